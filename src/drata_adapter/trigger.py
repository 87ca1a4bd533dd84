"""
DrataTrigger module for polling Drata and emitting change events

Each poll reads the watermark left by the previous poll, runs the strategy for
the configured event type, and advances the watermark to the time the poll
started. Strategy failures are logged and produce no events; the watermark
still advances so that one failing event type cannot stall the trigger.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Any, List, Optional, Callable

from .context import ExecutionContext
from .helpers import parse_date, to_iso_string, days_until
from .http_client import DrataHTTPClient
from .license_notice import emit_license_notice
from .pagination_strategy import PageBasedPagination, fetch_all
from .retry_handler import ExecutionCancelled, RetryHandler
from .watermark_store import WatermarkStore

Event = Dict[str, Any]

# Errors parse_date raises for malformed timestamps
UNPARSEABLE_DATE_ERRORS = (ValueError, TypeError, AttributeError, OverflowError, OSError)


class EventType(str, Enum):
    AUDIT_EVENT_CREATED = 'auditEventCreated'
    BACKGROUND_CHECK_EXPIRING = 'backgroundCheckExpiring'
    CONTROL_STATUS_CHANGED = 'controlStatusChanged'
    EVIDENCE_EXPIRING = 'evidenceExpiring'
    PERSONNEL_COMPLIANCE_CHANGED = 'personnelComplianceChanged'
    POLICY_ACKNOWLEDGMENT_PENDING = 'policyAcknowledgmentPending'
    TRAINING_OVERDUE = 'trainingOverdue'
    VENDOR_RISK_CHANGED = 'vendorRiskChanged'


@dataclass
class TriggerOptions:
    """Optional trigger settings"""
    days_before_expiry: int = 30
    framework_id: Optional[str] = None
    include_details: bool = True

    @classmethod
    def from_dict(cls, options: Optional[Dict[str, Any]]) -> 'TriggerOptions':
        options = options or {}
        return cls(
            days_before_expiry=int(options.get('daysBeforeExpiry') or 30),
            framework_id=options.get('frameworkId') or None,
            include_details=bool(options.get('includeDetails', True))
        )


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class DrataTrigger:
    """Polling trigger for Drata compliance events"""

    DEFAULT_LOOKBACK = timedelta(hours=24)

    def __init__(self, http_client: DrataHTTPClient, event: str, store: WatermarkStore,
                 options: Optional[TriggerOptions] = None,
                 retry_handler: Optional[RetryHandler] = None,
                 pagination: Optional[PageBasedPagination] = None,
                 clock: Callable[[], datetime] = _utc_now,
                 lookback: timedelta = DEFAULT_LOOKBACK):
        self.http_client = http_client
        self.event = EventType(event)
        self.store = store
        self.options = options or TriggerOptions()
        self.retry_handler = retry_handler
        self.pagination = pagination or PageBasedPagination()
        self.clock = clock
        self.lookback = lookback
        self.logger = logging.getLogger(__name__)

        self.strategies: Dict[EventType, Callable[[datetime, datetime], List[Event]]] = {
            EventType.CONTROL_STATUS_CHANGED: self._poll_control_status_changes,
            EventType.PERSONNEL_COMPLIANCE_CHANGED: self._poll_personnel_compliance_changes,
            EventType.VENDOR_RISK_CHANGED: self._poll_vendor_risk_changes,
            EventType.AUDIT_EVENT_CREATED: self._poll_audit_events,
            EventType.EVIDENCE_EXPIRING: self._poll_expiring_evidence,
            EventType.BACKGROUND_CHECK_EXPIRING: self._poll_expiring_background_checks,
            EventType.TRAINING_OVERDUE: self._poll_overdue_training,
            EventType.POLICY_ACKNOWLEDGMENT_PENDING: self._poll_pending_policy_acknowledgments,
        }

    @classmethod
    def from_context(cls, context: ExecutionContext, store: WatermarkStore,
                     **kwargs: Any) -> 'DrataTrigger':
        """Build a trigger from the 'event' and 'options' node parameters"""
        return cls(
            http_client=context.http_client,
            event=context.get_parameter('event'),
            store=store,
            options=TriggerOptions.from_dict(context.get_parameter('options', default={})),
            pagination=context.pagination,
            **kwargs
        )

    def poll(self) -> Optional[List[Event]]:
        """
        Run one poll cycle

        Returns:
            List of events, or None when nothing qualified

        Raises:
            ExecutionCancelled: If the poll was aborted; the watermark is left untouched
        """
        emit_license_notice()

        now = self.clock()
        stored = self.store.get()
        last_poll_time = parse_date(stored) if stored else now - self.lookback

        try:
            events = self.strategies[self.event](last_poll_time, now)
        except ExecutionCancelled:
            raise
        except Exception as e:
            self.logger.error(f"Drata trigger error for event {self.event.value}: {e}")
            events = []

        self.store.set(to_iso_string(now))

        if not events:
            return None
        return events

    # ------------------------------------------------------------------
    # Strategies
    # ------------------------------------------------------------------

    def _poll_control_status_changes(self, last_poll_time: datetime, now: datetime) -> List[Event]:
        query: Dict[str, Any] = {'updatedAfter': to_iso_string(last_poll_time)}
        if self.options.framework_id:
            query['frameworkId'] = self.options.framework_id

        controls = self._updated_since('/controls', query, last_poll_time)

        return [
            self._event(EventType.CONTROL_STATUS_CHANGED, control, {
                'controlId': control.get('id'),
                'controlName': control.get('name'),
                'status': control.get('status'),
                'previousStatus': control.get('previousStatus'),
                'updatedAt': control.get('updatedAt'),
            })
            for control in controls
        ]

    def _poll_personnel_compliance_changes(self, last_poll_time: datetime, now: datetime) -> List[Event]:
        query = {'updatedAfter': to_iso_string(last_poll_time)}
        personnel = self._updated_since('/personnel', query, last_poll_time)

        return [
            self._event(EventType.PERSONNEL_COMPLIANCE_CHANGED, person, {
                'personnelId': person.get('id'),
                'email': person.get('email'),
                'name': f"{person.get('firstName')} {person.get('lastName')}",
                'complianceStatus': person.get('complianceStatus'),
                'updatedAt': person.get('updatedAt'),
            })
            for person in personnel
        ]

    def _poll_vendor_risk_changes(self, last_poll_time: datetime, now: datetime) -> List[Event]:
        query = {'updatedAfter': to_iso_string(last_poll_time)}
        vendors = self._updated_since('/vendors', query, last_poll_time)

        return [
            self._event(EventType.VENDOR_RISK_CHANGED, vendor, {
                'vendorId': vendor.get('id'),
                'vendorName': vendor.get('name'),
                'riskRating': vendor.get('riskRating'),
                'previousRiskRating': vendor.get('previousRiskRating'),
                'updatedAt': vendor.get('updatedAt'),
            })
            for vendor in vendors
        ]

    def _poll_audit_events(self, last_poll_time: datetime, now: datetime) -> List[Event]:
        audit_events = self._fetch_all('/audit-events', {'after': to_iso_string(last_poll_time)})

        return [
            self._event(EventType.AUDIT_EVENT_CREATED, audit_event, {
                'eventId': audit_event.get('id'),
                'entityType': audit_event.get('entityType'),
                'entityId': audit_event.get('entityId'),
                'action': audit_event.get('action'),
                'userId': audit_event.get('userId'),
                'timestamp': audit_event.get('timestamp'),
            })
            for audit_event in audit_events
        ]

    def _poll_expiring_evidence(self, last_poll_time: datetime, now: datetime) -> List[Event]:
        evidence = self._fetch_all('/evidence', {'expiringBefore': self._expiry_horizon(now)})

        return [
            self._event(EventType.EVIDENCE_EXPIRING, item, {
                'evidenceId': item.get('id'),
                'fileName': item.get('fileName'),
                'type': item.get('type'),
                'expirationDate': item.get('expirationDate'),
                'controlId': item.get('controlId'),
                'daysUntilExpiry': self._days_until_expiry(item, now),
            })
            for item in evidence
        ]

    def _poll_expiring_background_checks(self, last_poll_time: datetime, now: datetime) -> List[Event]:
        checks = self._fetch_all('/background-checks', {'expiringBefore': self._expiry_horizon(now)})

        return [
            self._event(EventType.BACKGROUND_CHECK_EXPIRING, check, {
                'checkId': check.get('id'),
                'personnelId': check.get('personnelId'),
                'provider': check.get('provider'),
                'expirationDate': check.get('expirationDate'),
                'daysUntilExpiry': self._days_until_expiry(check, now),
            })
            for check in checks
        ]

    def _poll_overdue_training(self, last_poll_time: datetime, now: datetime) -> List[Event]:
        training = self._fetch_all('/security-training', {'status': 'OVERDUE'})

        return [
            self._event(EventType.TRAINING_OVERDUE, item, {
                'trainingId': item.get('id'),
                'personnelId': item.get('personnelId'),
                'courseName': item.get('courseName'),
                'dueDate': item.get('dueDate'),
                'status': item.get('status'),
            })
            for item in training
        ]

    def _poll_pending_policy_acknowledgments(self, last_poll_time: datetime, now: datetime) -> List[Event]:
        policies = self._fetch_all('/policies')
        pending: List[Event] = []

        for policy in policies:
            try:
                response = self._request('GET', f"/policies/{policy.get('id')}/acknowledgments",
                                         None, {'status': 'PENDING'})
                pending.extend(self._acknowledgment_events(policy, response))
            except ExecutionCancelled:
                raise
            except Exception as e:
                self.logger.debug(f"Skipping acknowledgments for policy {policy.get('id')}: {e}")

        return pending

    def _acknowledgment_events(self, policy: Dict[str, Any], response: Any) -> List[Event]:
        acknowledgments = response.get('data') if isinstance(response, dict) else None
        events: List[Event] = []
        for ack in acknowledgments or []:
            if not isinstance(ack, dict):
                continue
            event: Event = {
                'eventType': EventType.POLICY_ACKNOWLEDGMENT_PENDING.value,
                'policyId': policy.get('id'),
                'policyName': policy.get('name'),
                'personnelId': ack.get('personnelId'),
                'requestedAt': ack.get('requestedAt'),
            }
            if self.options.include_details:
                event['policyDetails'] = policy
                event['acknowledgmentDetails'] = ack
            events.append(event)
        return events

    # ------------------------------------------------------------------
    # Shared helpers
    # ------------------------------------------------------------------

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None,
                 query: Optional[Dict[str, Any]] = None) -> Any:
        if self.retry_handler is not None:
            return self.retry_handler.request_with_retry(method, path, body, query)
        return self.http_client.request(method, path, body, query)

    def _fetch_all(self, path: str, query: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        return fetch_all(self._request, 'GET', path, None, query, strategy=self.pagination)

    def _updated_since(self, path: str, query: Dict[str, Any],
                       last_poll_time: datetime) -> List[Dict[str, Any]]:
        # Server-side updatedAfter may be inclusive, so filter strictly here too
        items = self._fetch_all(path, query)
        return [item for item in items if self._updated_after(item, last_poll_time)]

    def _updated_after(self, item: Dict[str, Any], last_poll_time: datetime) -> bool:
        updated_at = item.get('updatedAt')
        if not updated_at:
            return False
        try:
            return parse_date(updated_at) > last_poll_time
        except UNPARSEABLE_DATE_ERRORS:
            self.logger.debug(f"Ignoring item {item.get('id')} with unreadable updatedAt {updated_at!r}")
            return False

    def _expiry_horizon(self, now: datetime) -> str:
        return to_iso_string(now + timedelta(days=self.options.days_before_expiry))

    @staticmethod
    def _days_until_expiry(item: Dict[str, Any], now: datetime) -> Optional[int]:
        expiration_date = item.get('expirationDate')
        if not expiration_date:
            return None
        try:
            return days_until(expiration_date, now)
        except UNPARSEABLE_DATE_ERRORS:
            return None

    def _event(self, event_type: EventType, item: Dict[str, Any], fields: Dict[str, Any]) -> Event:
        event: Event = {'eventType': event_type.value, **fields}
        if self.options.include_details:
            event['details'] = item
        return event
