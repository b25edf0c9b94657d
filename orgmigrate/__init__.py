"""
Org Migration Toolkit

Plans, backs up, reconciles and rolls back bulk record migrations between
two Salesforce orgs. The actual record transfer is delegated to an external
tool that consumes the generated plan documents.

Supports:
- Phased configuration catalogs (CPQ, Revenue Cloud) and flat object lists
- Master record selection with dependent (slave) object filtering
- Pre-migration target snapshots
- Post-migration discovery of newly created records
- Inverse plans for rolling a migration back
"""

__version__ = "0.1.0"
