"""Identify the records a completed migration created in the target org."""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from ..errors import AmbiguousIdentityError, MigrationError, ReconciliationError
from ..models.backup import BackupManifest, BackupObject
from ..models.external_id import ExternalIdSpec
from ..models.plan import Operation, SkippedObject
from ..soql import chunked, limit_clause, quote, split_conditions, where_clause
from ..stores.base import BaseStore
from .field_cache import ID_FIELD
from .query_builder import record_key_condition
from .snapshots import inserted_ids_file_name, write_records

logger = logging.getLogger(__name__)

STRATEGY_EXTERNAL_ID = "external_id"
STRATEGY_TIME_WINDOW = "time_window"

# Source-side counts above this ratio are reported as suspicious
EXPECTED_COUNT_TOLERANCE = 1.5

SOQL_DATETIME = "%Y-%m-%dT%H:%M:%SZ"

_TIME_OR_ACTOR = re.compile(
    r"\b(CreatedDate|LastModifiedDate|SystemModstamp|CreatedById|LastModifiedById)\b",
    re.IGNORECASE,
)
_STORE_ID = re.compile(r"^\(?\s*Id\s*(=|!=|IN\b|NOT\s+IN\b)", re.IGNORECASE)
_ID_LIST = re.compile(r"\bIN\s*\(\s*'[A-Za-z0-9]{15}(?:[A-Za-z0-9]{3})?'", re.IGNORECASE)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def narrowing_conditions(clause: Optional[str]) -> List[str]:
    """
    Parts of an original WHERE clause that are safe to reuse on the target.

    Time and actor conditions would filter circularly, and store id lists
    refer to source-side records.
    """
    kept = []
    for condition in split_conditions(clause or ""):
        if _TIME_OR_ACTOR.search(condition):
            continue
        if _STORE_ID.search(condition) or _ID_LIST.search(condition):
            continue
        kept.append(condition)
    return kept


@dataclass
class ReconciliationOutcome:
    object_type: str
    strategy: str
    record_count: int
    file_name: str
    imprecise_actor: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "object_type": self.object_type,
            "strategy": self.strategy,
            "record_count": self.record_count,
            "file_name": self.file_name,
            "imprecise_actor": self.imprecise_actor,
        }


@dataclass
class ReconciliationResult:
    manifest: BackupManifest
    outcomes: List[ReconciliationOutcome] = field(default_factory=list)
    skipped: List[SkippedObject] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "outcomes": [o.to_dict() for o in self.outcomes],
            "skipped": [s.to_dict() for s in self.skipped],
            "warnings": self.warnings,
        }


class ReconciliationEngine:
    """
    Finds the ids of records inserted by a migration.

    Strategies, first success wins:
    1. correlate the source records' external ids with target records
    2. records created inside the run's time window by the acting user
    If neither finds anything the object is skipped; ids are never guessed.
    """

    def __init__(
        self,
        source_store: BaseStore,
        target_store: BaseStore,
        allow_imprecise_actor: bool = False,
        chunk_size: int = 200,
    ):
        self.source = source_store
        self.target = target_store
        self.allow_imprecise_actor = allow_imprecise_actor
        self.chunk_size = chunk_size

    def reconcile(
        self,
        manifest: BackupManifest,
        backup_dir: Union[str, Path],
        started_at: Optional[datetime] = None,
        ended_at: Optional[datetime] = None,
        username: Optional[str] = None,
    ) -> ReconciliationResult:
        """
        Reconcile every inserted object of a manifest and save the manifest.

        Args:
            manifest: Manifest of the pre-migration backup
            backup_dir: Directory holding the manifest
            started_at: Run start (UTC), enables the time-window strategy
            ended_at: Run end (UTC)
            username: Username the transfer ran as; defaults to the target org's
        """
        backup_dir = Path(backup_dir)
        result = ReconciliationResult(manifest=manifest)
        username = username or manifest.target_org.username

        candidates = [
            obj for obj in manifest.objects
            if obj.operation == Operation.INSERT.value and not obj.reconciled
        ]
        if not candidates:
            logger.info("No inserted objects to reconcile")
            return result

        for obj in candidates:
            try:
                outcome = self._reconcile_object(obj, backup_dir, started_at, ended_at, username, result)
                result.outcomes.append(outcome)
            except AmbiguousIdentityError as e:
                logger.error(f"{obj.object_type}: {e.message}")
                result.warnings.append(f"{obj.object_type}: {e.message}")
                result.skipped.append(SkippedObject(obj.object_type, e.message))
            except (MigrationError, OSError) as e:
                logger.warning(f"Reconciliation of {obj.object_type} failed: {e}")
                result.warnings.append(f"{obj.object_type}: {e}")
                result.skipped.append(SkippedObject(obj.object_type, str(e)))

        manifest.save(backup_dir)

        if not result.outcomes:
            raise ReconciliationError(
                f"None of {len(candidates)} inserted object(s) could be reconciled: "
                + "; ".join(result.warnings)
            )
        return result

    def _reconcile_object(
        self,
        obj: BackupObject,
        backup_dir: Path,
        started_at: Optional[datetime],
        ended_at: Optional[datetime],
        username: Optional[str],
        result: ReconciliationResult,
    ) -> ReconciliationOutcome:
        spec = ExternalIdSpec.parse(obj.external_id)
        strategy = STRATEGY_EXTERNAL_ID
        imprecise = False

        try:
            records = self.correlate_by_external_id(obj, spec)
        except MigrationError as e:
            warning = f"{obj.object_type}: external id correlation failed, trying the time window: {e}"
            logger.warning(warning)
            result.warnings.append(warning)
            records = []

        if not records and started_at and ended_at:
            strategy = STRATEGY_TIME_WINDOW
            records, imprecise = self.match_by_time_window(obj, spec, started_at, ended_at, username)
            expected = self.expected_count(obj)
            if records and expected is not None and len(records) > expected * EXPECTED_COUNT_TOLERANCE:
                warning = (
                    f"{obj.object_type}: found {len(records)} record(s) in the time window "
                    f"but expected about {expected}"
                )
                logger.warning(warning)
                result.warnings.append(warning)
            if imprecise:
                result.warnings.append(
                    f"{obj.object_type}: acting user resolved to the most recently active user"
                )

        if not records:
            raise AmbiguousIdentityError(
                "could not identify the inserted records; object left out of rollback"
            )

        file_name = inserted_ids_file_name(obj.object_type)
        count = write_records(backup_dir / file_name, [ID_FIELD] + spec.fields, records)
        obj.record_post_migration(file_name, count)
        logger.info(f"{obj.object_type}: {count} inserted record(s) identified by {strategy}")
        return ReconciliationOutcome(obj.object_type, strategy, count, file_name, imprecise)

    def correlate_by_external_id(self, obj: BackupObject, spec: ExternalIdSpec) -> List[Dict[str, Any]]:
        """Target records whose external ids match the source records the plan selected."""
        source_query = f"SELECT {', '.join(spec.fields)} FROM {obj.object_type}"
        original_where = where_clause(obj.original_query)
        if original_where:
            source_query += f" WHERE {original_where}"

        keys: List[Tuple[Any, ...]] = []
        for record in self.source.query_all(source_query):
            key = spec.key_for_record(record)
            if key is not None and key not in keys:
                keys.append(key)
        if not keys:
            return []

        records: Dict[str, Dict[str, Any]] = {}
        for chunk in chunked(keys, self.chunk_size):
            condition = record_key_condition(spec, chunk)
            if not condition:
                continue
            query = f"SELECT {ID_FIELD}, {', '.join(spec.fields)} FROM {obj.object_type} WHERE {condition}"
            for record in self.target.query_all(query):
                records.setdefault(record[ID_FIELD], record)
        return list(records.values())

    def resolve_actor_id(self, username: Optional[str]) -> Tuple[Optional[str], bool]:
        """
        Store id of the user the migration ran as.

        Returns:
            (user id or None, whether the id is a best guess)
        """
        if username:
            try:
                rows = self.target.query_all(
                    f"SELECT Id FROM User WHERE Username = {quote(username)} LIMIT 1"
                )
                if rows:
                    return rows[0][ID_FIELD], False
                logger.warning(f"User {username} not found in {self.target.name}")
            except MigrationError as e:
                logger.warning(f"User lookup for {username} failed: {e}")

        if not self.allow_imprecise_actor:
            logger.warning("Acting user unknown and the most-recently-active fallback is disabled")
            return None, False

        rows = self.target.query_all(
            "SELECT Id FROM User WHERE IsActive = true "
            "ORDER BY LastLoginDate DESC NULLS LAST LIMIT 1"
        )
        if not rows:
            return None, False
        logger.warning(f"Using most recently active user {rows[0][ID_FIELD]} as the acting user")
        return rows[0][ID_FIELD], True

    def match_by_time_window(
        self,
        obj: BackupObject,
        spec: ExternalIdSpec,
        started_at: datetime,
        ended_at: datetime,
        username: Optional[str],
    ) -> Tuple[List[Dict[str, Any]], bool]:
        """Records of the object the acting user created during the run."""
        actor_id, imprecise = self.resolve_actor_id(username)
        if not actor_id:
            return [], False

        started_at, ended_at = _as_utc(started_at), _as_utc(ended_at)
        start = started_at.replace(microsecond=0)
        end = ended_at.replace(microsecond=0)
        if ended_at.microsecond:
            end += timedelta(seconds=1)

        conditions = [
            f"CreatedDate >= {start.strftime(SOQL_DATETIME)}",
            f"CreatedDate <= {end.strftime(SOQL_DATETIME)}",
            f"CreatedById = {quote(actor_id)}",
        ]
        conditions.extend(narrowing_conditions(where_clause(obj.original_query)))

        query = (
            f"SELECT {ID_FIELD}, {', '.join(spec.fields)} FROM {obj.object_type} "
            f"WHERE {' AND '.join(conditions)}"
        )
        limit = limit_clause(obj.original_query)
        if limit:
            query += f" {limit}"
        return self.target.query_all(query), imprecise

    def expected_count(self, obj: BackupObject) -> Optional[int]:
        """How many source records the plan selected, if it can be counted."""
        query = f"SELECT COUNT() FROM {obj.object_type}"
        original_where = where_clause(obj.original_query)
        if original_where:
            query += f" WHERE {original_where}"
        try:
            return self.source.count(query)
        except MigrationError as e:
            logger.warning(f"Could not count source {obj.object_type} records: {e}")
            return None
