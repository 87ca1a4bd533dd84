"""
Operation registry mapping (resource, operation) pairs to Drata API calls

Handlers are plain functions of (context, item_index). Node parameters arrive
through the context; filter and field collections are cleaned before use.
"""

from typing import Dict, Any, List, Callable, Iterable, Optional, Tuple, Union

from .context import ExecutionContext
from .helpers import clean_object, format_date_for_api, to_iso_date
from .pagination_strategy import fetch_all

OperationResult = Union[Dict[str, Any], List[Dict[str, Any]]]
Handler = Callable[[ExecutionContext, int], OperationResult]


class UnknownOperationError(Exception):
    """Raised when no handler is registered for a resource/operation pair"""
    pass


class OperationRegistry:
    """Lookup table of operation handlers keyed by (resource, operation)"""

    def __init__(self):
        self._handlers: Dict[Tuple[str, str], Handler] = {}

    def register(self, resource: str, operation: str) -> Callable[[Handler], Handler]:
        def decorator(handler: Handler) -> Handler:
            key = (resource, operation)
            if key in self._handlers:
                raise ValueError(f"Operation already registered: {resource}.{operation}")
            self._handlers[key] = handler
            return handler
        return decorator

    def get(self, resource: str, operation: str) -> Handler:
        try:
            return self._handlers[(resource, operation)]
        except KeyError:
            raise UnknownOperationError(
                f"The operation '{operation}' is not supported for resource '{resource}'"
            ) from None

    def resources(self) -> List[str]:
        return sorted({resource for resource, _ in self._handlers})

    def operations(self, resource: str) -> List[str]:
        return sorted(op for res, op in self._handlers if res == resource)

    def __contains__(self, key: Tuple[str, str]) -> bool:
        return key in self._handlers


registry = OperationRegistry()
operation = registry.register


def execute_operation(context: ExecutionContext, resource: str, operation_name: str,
                      item_index: int) -> OperationResult:
    """Run the registered handler for one input item"""
    return registry.get(resource, operation_name)(context, item_index)


# ----------------------------------------------------------------------
# Shared request patterns
# ----------------------------------------------------------------------

def _request(context: ExecutionContext, method: str, path: str,
             body: Optional[Dict[str, Any]] = None,
             query: Optional[Dict[str, Any]] = None) -> OperationResult:
    return context.http_client.request(method, path, body, query)


def _list(context: ExecutionContext, i: int, path: str,
          query: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
    """Return every item when returnAll is set, otherwise one page of 'limit' items"""
    query = dict(query or {})
    if context.get_parameter('returnAll', i, False):
        return fetch_all(context.http_client.request, 'GET', path, None, query,
                         strategy=context.pagination)

    query['limit'] = context.get_parameter('limit', i, 50)
    response = _request(context, 'GET', path, None, query)
    if isinstance(response, dict):
        return response.get('data') or []
    return []


def _filtered_list(context: ExecutionContext, i: int, path: str) -> List[Dict[str, Any]]:
    return _list(context, i, path, clean_object(context.get_parameter('filters', i, {})))


def _format_dates(fields: Dict[str, Any], names: Iterable[str]) -> Dict[str, Any]:
    for name in names:
        if fields.get(name):
            fields[name] = format_date_for_api(fields[name])
    return fields


def _collection(context: ExecutionContext, i: int, name: str) -> Dict[str, Any]:
    return clean_object(context.get_parameter(name, i, {}))


def _upload(context: ExecutionContext, i: int, path: str,
            fields: Dict[str, Any]) -> Dict[str, Any]:
    property_name = context.get_parameter('binaryPropertyName', i, 'data')
    payload = context.get_binary_data(i, property_name)
    return context.http_client.upload_file(path, payload, fields)


COMPLETION_DATES = ('completedDate', 'expirationDate')


# ----------------------------------------------------------------------
# Control
# ----------------------------------------------------------------------

@operation('control', 'get')
def get_control(context, i):
    return _request(context, 'GET', f"/controls/{context.get_parameter('controlId', i)}")


@operation('control', 'getAll')
def get_all_controls(context, i):
    return _filtered_list(context, i, '/controls')


@operation('control', 'update')
def update_control(context, i):
    control_id = context.get_parameter('controlId', i)
    return _request(context, 'PUT', f"/controls/{control_id}", _collection(context, i, 'updateFields'))


@operation('control', 'getEvidence')
def get_control_evidence(context, i):
    control_id = context.get_parameter('controlId', i)
    return fetch_all(context.http_client.request, 'GET', f"/controls/{control_id}/evidence",
                     strategy=context.pagination)


@operation('control', 'uploadEvidence')
def upload_control_evidence(context, i):
    control_id = context.get_parameter('controlId', i)
    return _upload(context, i, f"/controls/{control_id}/evidence",
                   _collection(context, i, 'additionalFields'))


@operation('control', 'getMonitoringStatus')
def get_control_monitoring_status(context, i):
    control_id = context.get_parameter('controlId', i)
    return _request(context, 'GET', f"/controls/{control_id}/monitoring-status")


# ----------------------------------------------------------------------
# Personnel
# ----------------------------------------------------------------------

@operation('personnel', 'create')
def create_personnel(context, i):
    body = {
        'email': context.get_parameter('email', i),
        'firstName': context.get_parameter('firstName', i),
        'lastName': context.get_parameter('lastName', i),
        **_collection(context, i, 'additionalFields'),
    }
    return _request(context, 'POST', '/personnel', _format_dates(body, ('startDate',)))


@operation('personnel', 'get')
def get_personnel(context, i):
    return _request(context, 'GET', f"/personnel/{context.get_parameter('personnelId', i)}")


@operation('personnel', 'getByEmail')
def get_personnel_by_email(context, i):
    return _request(context, 'GET', '/personnel', None, {'email': context.get_parameter('email', i)})


@operation('personnel', 'getAll')
def get_all_personnel(context, i):
    return _filtered_list(context, i, '/personnel')


@operation('personnel', 'update')
def update_personnel(context, i):
    personnel_id = context.get_parameter('personnelId', i)
    return _request(context, 'PUT', f"/personnel/{personnel_id}", _collection(context, i, 'updateFields'))


@operation('personnel', 'offboard')
def offboard_personnel(context, i):
    personnel_id = context.get_parameter('personnelId', i)
    body = {'endDate': format_date_for_api(context.get_parameter('endDate', i))}
    return _request(context, 'PUT', f"/personnel/{personnel_id}/offboard", body)


@operation('personnel', 'uploadEvidence')
def upload_personnel_evidence(context, i):
    personnel_id = context.get_parameter('personnelId', i)
    return _upload(context, i, f"/personnel/{personnel_id}/evidence",
                   _collection(context, i, 'evidenceOptions'))


@operation('personnel', 'getComplianceStatus')
def get_personnel_compliance_status(context, i):
    personnel_id = context.get_parameter('personnelId', i)
    return _request(context, 'GET', f"/personnel/{personnel_id}/compliance-status")


# ----------------------------------------------------------------------
# Asset
# ----------------------------------------------------------------------

@operation('asset', 'create')
def create_asset(context, i):
    body = {
        'name': context.get_parameter('name', i),
        'assetType': context.get_parameter('assetType', i),
        **_collection(context, i, 'additionalFields'),
    }
    return _request(context, 'POST', '/assets', body)


@operation('asset', 'get')
def get_asset(context, i):
    return _request(context, 'GET', f"/assets/{context.get_parameter('assetId', i)}")


@operation('asset', 'getAll')
def get_all_assets(context, i):
    return _filtered_list(context, i, '/assets')


@operation('asset', 'update')
def update_asset(context, i):
    asset_id = context.get_parameter('assetId', i)
    return _request(context, 'PUT', f"/assets/{asset_id}", _collection(context, i, 'updateFields'))


@operation('asset', 'delete')
def delete_asset(context, i):
    return _request(context, 'DELETE', f"/assets/{context.get_parameter('assetId', i)}")


@operation('asset', 'getComplianceStatus')
def get_asset_compliance_status(context, i):
    asset_id = context.get_parameter('assetId', i)
    return _request(context, 'GET', f"/assets/{asset_id}/compliance-status")


# ----------------------------------------------------------------------
# Vendor
# ----------------------------------------------------------------------

@operation('vendor', 'create')
def create_vendor(context, i):
    body = {
        'vendorName': context.get_parameter('vendorName', i),
        **_collection(context, i, 'additionalFields'),
    }
    return _request(context, 'POST', '/vendors', _format_dates(body, ('contractExpiration',)))


@operation('vendor', 'get')
def get_vendor(context, i):
    return _request(context, 'GET', f"/vendors/{context.get_parameter('vendorId', i)}")


@operation('vendor', 'getAll')
def get_all_vendors(context, i):
    return _filtered_list(context, i, '/vendors')


@operation('vendor', 'update')
def update_vendor(context, i):
    vendor_id = context.get_parameter('vendorId', i)
    body = _format_dates(_collection(context, i, 'updateFields'), ('contractExpiration',))
    return _request(context, 'PUT', f"/vendors/{vendor_id}", body)


@operation('vendor', 'delete')
def delete_vendor(context, i):
    return _request(context, 'DELETE', f"/vendors/{context.get_parameter('vendorId', i)}")


@operation('vendor', 'getSecurityAssessment')
def get_vendor_security_assessment(context, i):
    vendor_id = context.get_parameter('vendorId', i)
    return _request(context, 'GET', f"/vendors/{vendor_id}/security-assessment")


@operation('vendor', 'uploadDocument')
def upload_vendor_document(context, i):
    vendor_id = context.get_parameter('vendorId', i)
    return _upload(context, i, f"/vendors/{vendor_id}/documents",
                   _collection(context, i, 'documentOptions'))


# ----------------------------------------------------------------------
# Evidence
# ----------------------------------------------------------------------

@operation('evidence', 'get')
def get_evidence(context, i):
    return _request(context, 'GET', f"/evidence/{context.get_parameter('evidenceId', i)}")


@operation('evidence', 'getAll')
def get_all_evidence(context, i):
    return _filtered_list(context, i, '/evidence')


@operation('evidence', 'getByControl')
def get_evidence_by_control(context, i):
    return _list(context, i, f"/controls/{context.get_parameter('controlId', i)}/evidence")


@operation('evidence', 'getByType')
def get_evidence_by_type(context, i):
    return _list(context, i, '/evidence', {'type': context.get_parameter('evidenceType', i)})


@operation('evidence', 'upload')
def upload_evidence(context, i):
    control_id = context.get_parameter('controlId', i)
    fields = _format_dates(_collection(context, i, 'evidenceOptions'), ('expirationDate',))
    return _upload(context, i, f"/controls/{control_id}/evidence", fields)


@operation('evidence', 'delete')
def delete_evidence(context, i):
    return _request(context, 'DELETE', f"/evidence/{context.get_parameter('evidenceId', i)}")


# ----------------------------------------------------------------------
# Framework
# ----------------------------------------------------------------------

@operation('framework', 'get')
def get_framework(context, i):
    return _request(context, 'GET', f"/frameworks/{context.get_parameter('frameworkId', i)}")


@operation('framework', 'getAll')
def get_all_frameworks(context, i):
    return _filtered_list(context, i, '/frameworks')


@operation('framework', 'getControls')
def get_framework_controls(context, i):
    return _list(context, i, f"/frameworks/{context.get_parameter('frameworkId', i)}/controls")


@operation('framework', 'getComplianceScore')
def get_framework_compliance_score(context, i):
    framework_id = context.get_parameter('frameworkId', i)
    return _request(context, 'GET', f"/frameworks/{framework_id}/compliance-score")


@operation('framework', 'getGaps')
def get_framework_gaps(context, i):
    return _request(context, 'GET', f"/frameworks/{context.get_parameter('frameworkId', i)}/gaps")


# ----------------------------------------------------------------------
# Risk
# ----------------------------------------------------------------------

@operation('risk', 'create')
def create_risk(context, i):
    body = {
        'title': context.get_parameter('title', i),
        **_collection(context, i, 'additionalFields'),
    }
    return _request(context, 'POST', '/risks', body)


@operation('risk', 'get')
def get_risk(context, i):
    return _request(context, 'GET', f"/risks/{context.get_parameter('riskId', i)}")


@operation('risk', 'getAll')
def get_all_risks(context, i):
    return _filtered_list(context, i, '/risks')


@operation('risk', 'update')
def update_risk(context, i):
    risk_id = context.get_parameter('riskId', i)
    return _request(context, 'PUT', f"/risks/{risk_id}", _collection(context, i, 'updateFields'))


@operation('risk', 'delete')
def delete_risk(context, i):
    return _request(context, 'DELETE', f"/risks/{context.get_parameter('riskId', i)}")


@operation('risk', 'addMitigation')
def add_risk_mitigation(context, i):
    risk_id = context.get_parameter('riskId', i)
    body = {
        'plan': context.get_parameter('mitigationPlan', i),
        **_collection(context, i, 'mitigationOptions'),
    }
    return _request(context, 'POST', f"/risks/{risk_id}/mitigations", body)


@operation('risk', 'linkControl')
def link_risk_control(context, i):
    risk_id = context.get_parameter('riskId', i)
    control_id = context.get_parameter('controlId', i)
    return _request(context, 'POST', f"/risks/{risk_id}/controls/{control_id}")


# ----------------------------------------------------------------------
# Policy
# ----------------------------------------------------------------------

@operation('policy', 'get')
def get_policy(context, i):
    return _request(context, 'GET', f"/policies/{context.get_parameter('policyId', i)}")


@operation('policy', 'getAll')
def get_all_policies(context, i):
    return _filtered_list(context, i, '/policies')


@operation('policy', 'getAcknowledgments')
def get_policy_acknowledgments(context, i):
    return _list(context, i, f"/policies/{context.get_parameter('policyId', i)}/acknowledgments")


@operation('policy', 'getVersionHistory')
def get_policy_version_history(context, i):
    return _request(context, 'GET', f"/policies/{context.get_parameter('policyId', i)}/versions")


# ----------------------------------------------------------------------
# User
# ----------------------------------------------------------------------

@operation('user', 'get')
def get_user(context, i):
    return _request(context, 'GET', f"/users/{context.get_parameter('userId', i)}")


@operation('user', 'getByEmail')
def get_user_by_email(context, i):
    return _request(context, 'GET', '/users', None, {'email': context.get_parameter('email', i)})


@operation('user', 'getAll')
def get_all_users(context, i):
    return _filtered_list(context, i, '/users')


@operation('user', 'getRoles')
def get_user_roles(context, i):
    return _request(context, 'GET', f"/users/{context.get_parameter('userId', i)}/roles")


@operation('user', 'getActivity')
def get_user_activity(context, i):
    return _list(context, i, f"/users/{context.get_parameter('userId', i)}/activity")


# ----------------------------------------------------------------------
# Background check
# ----------------------------------------------------------------------

@operation('backgroundCheck', 'get')
def get_background_check(context, i):
    return _request(context, 'GET', f"/background-checks/{context.get_parameter('checkId', i)}")


@operation('backgroundCheck', 'getAll')
def get_all_background_checks(context, i):
    return _filtered_list(context, i, '/background-checks')


@operation('backgroundCheck', 'getByPersonnel')
def get_background_checks_by_personnel(context, i):
    personnel_id = context.get_parameter('personnelId', i)
    return _list(context, i, f"/personnel/{personnel_id}/background-checks")


@operation('backgroundCheck', 'updateStatus')
def update_background_check_status(context, i):
    check_id = context.get_parameter('checkId', i)
    body = {
        'status': context.get_parameter('status', i),
        **_collection(context, i, 'additionalFields'),
    }
    return _request(context, 'PUT', f"/background-checks/{check_id}",
                    _format_dates(body, COMPLETION_DATES))


@operation('backgroundCheck', 'upload')
def upload_background_check(context, i):
    personnel_id = context.get_parameter('personnelId', i)
    fields = _format_dates(_collection(context, i, 'uploadOptions'), COMPLETION_DATES)
    return _upload(context, i, f"/personnel/{personnel_id}/background-checks", fields)


# ----------------------------------------------------------------------
# Security training
# ----------------------------------------------------------------------

@operation('securityTraining', 'get')
def get_security_training(context, i):
    return _request(context, 'GET', f"/security-training/{context.get_parameter('trainingId', i)}")


@operation('securityTraining', 'getAll')
def get_all_security_training(context, i):
    return _filtered_list(context, i, '/security-training')


@operation('securityTraining', 'getByPersonnel')
def get_security_training_by_personnel(context, i):
    personnel_id = context.get_parameter('personnelId', i)
    return _list(context, i, f"/personnel/{personnel_id}/security-training")


@operation('securityTraining', 'getOverdue')
def get_overdue_security_training(context, i):
    return _list(context, i, '/security-training/overdue')


@operation('securityTraining', 'updateStatus')
def update_security_training_status(context, i):
    training_id = context.get_parameter('trainingId', i)
    body = {
        'status': context.get_parameter('status', i),
        **_collection(context, i, 'additionalFields'),
    }
    return _request(context, 'PUT', f"/security-training/{training_id}",
                    _format_dates(body, COMPLETION_DATES))


@operation('securityTraining', 'upload')
def upload_security_training(context, i):
    personnel_id = context.get_parameter('personnelId', i)
    fields = {
        'courseName': context.get_parameter('courseName', i),
        **_collection(context, i, 'uploadOptions'),
    }
    return _upload(context, i, f"/personnel/{personnel_id}/security-training",
                   _format_dates(fields, COMPLETION_DATES))


# ----------------------------------------------------------------------
# Audit event
# ----------------------------------------------------------------------

@operation('auditEvent', 'get')
def get_audit_event(context, i):
    return _request(context, 'GET', f"/audit-events/{context.get_parameter('eventId', i)}")


@operation('auditEvent', 'getAll')
def get_all_audit_events(context, i):
    return _filtered_list(context, i, '/audit-events')


@operation('auditEvent', 'getByDateRange')
def get_audit_events_by_date_range(context, i):
    query = {
        'startDate': to_iso_date(context.get_parameter('startDate', i)),
        'endDate': to_iso_date(context.get_parameter('endDate', i)),
    }
    return _list(context, i, '/audit-events', query)


@operation('auditEvent', 'getByUser')
def get_audit_events_by_user(context, i):
    return _list(context, i, '/audit-events', {'userId': context.get_parameter('userId', i)})


@operation('auditEvent', 'getByEntity')
def get_audit_events_by_entity(context, i):
    query = {
        'entityType': context.get_parameter('entityType', i),
        'entityId': context.get_parameter('entityId', i),
    }
    return _list(context, i, '/audit-events', query)
