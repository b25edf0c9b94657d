"""Stores the toolkit queries: the abstract contract and Salesforce REST."""

from .base import BaseStore, QueryPage
from .salesforce import SalesforceStore

__all__ = ["BaseStore", "QueryPage", "SalesforceStore"]
