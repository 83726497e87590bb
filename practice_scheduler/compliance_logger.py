from datetime import datetime, timezone
from typing import Optional, Any, Dict
import logging
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from . import models


class ComplianceLogger:
	"""Stores schedule and booking events in the AuditLog table. A failed write is logged, never raised."""

	def __init__(self, source: str = 'PRACTICE-SCHEDULER'):
		self.source = source
		self.logger = logging.getLogger(__name__)

	@staticmethod
	def _normalize_action(action: str) -> models.AuditAction:
		action_upper = (action or '').upper()
		try:
			return models.AuditAction[action_upper]
		except KeyError:
			pass
		if action_upper.endswith('_CREATE') or action_upper.startswith('CREATE_') or 'BOOK' in action_upper:
			return models.AuditAction.CREATE
		if action_upper.endswith('_UPDATE') or action_upper.startswith('UPDATE_'):
			return models.AuditAction.UPDATE
		if action_upper.endswith('_DELETE') or action_upper.startswith('DELETE_'):
			return models.AuditAction.DELETE
		if 'BULK' in action_upper:
			return models.AuditAction.BULK_ACTION
		if 'SCHEDULE' in action_upper or 'POLICY' in action_upper or 'EXCEPTION' in action_upper:
			return models.AuditAction.UPDATE
		return models.AuditAction.READ

	def log_event(
		self,
		db: Session,
		action: str,
		category: str,
		details: Optional[str] = None,
		severity: str = 'INFO',
		resource_type: Optional[str] = None,
		resource_id: Optional[int] = None,
		actor: Optional[str] = None,
		new_values: Optional[Dict[str, Any]] = None,
		**_: Any
	) -> None:
		"""Writes one AuditLog row on the caller's session."""
		try:
			db_log = models.AuditLog(
				actor=actor or self.source,
				action=self._normalize_action(action),
				category=category or 'GENERAL',
				severity=severity or 'INFO',
				resource_type=resource_type,
				resource_id=resource_id,
				details=details,
				new_values=new_values,
				timestamp=datetime.now(timezone.utc),
			)
			db.add(db_log)
			db.commit()
		except SQLAlchemyError as e:
			db.rollback()
			self.logger.error(f"Failed to save compliance log to DB: {e}")


# Singleton instance for global import
compliance_logger = ComplianceLogger()
