# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Resident verification wizard sessions.

A VerificationWizard wraps one user's draft together with the services the
wizard needs. Every mutation persists the whole draft. Sessions reload the
stored draft before each request, except while one of their own writes is
failing; then the in-memory draft stays authoritative until it is saved.
"""

import logging
import threading
from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional
from opentelemetry import trace
from pymongo.errors import PyMongoError

from domain import wizard
from domain import geofence
from domain.geography import CanonicalGeographyIndex
from domain.reconciliation import reconcile
from models.entities import CaptureError, Coordinates, VerificationDraft, VerificationResult
from models.enums import CoverageStatus
from .adjudicator import SubmissionGateway, SubmissionRejected
from .audit import AuditService
from .drafts import DraftStore, PersistenceFailure
from .tenant_directory import TenantDirectory

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024


class InvalidSelection(Exception):
    """A selector value does not belong to the current cascade."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(message)


class VerificationWizard:
    """One resident's wizard session."""

    def __init__(
        self,
        user_id: str,
        store: DraftStore,
        directory: TenantDirectory,
        geography_index: CanonicalGeographyIndex,
        gateway: SubmissionGateway,
        audit_service: Optional[AuditService] = None,
        default_centroid: Coordinates = geofence.DEFAULT_CENTROID,
        max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
        draft: Optional[VerificationDraft] = None
    ):
        self.user_id = user_id
        self.store = store
        self.directory = directory
        self.geography_index = geography_index
        self.gateway = gateway
        self.audit_service = audit_service
        self.default_centroid = default_centroid
        self.max_image_bytes = max_image_bytes
        self.draft = draft or wizard.new_draft(user_id)
        self.capture_error: Optional[CaptureError] = None
        # Name of the draft write that last failed, while storage lags behind
        self.unsynced: Optional[str] = None

    @classmethod
    def resume(cls, user_id: str, store: DraftStore, **kwargs) -> "VerificationWizard":
        """
        Open a session, restoring the saved draft when there is one.

        A failing read starts a fresh draft instead of blocking the resident.
        """
        with tracer.start_as_current_span("wizard.resume") as span:
            try:
                draft = store.load(user_id)
            except PyMongoError as e:
                logger.error("Failed to load verification draft", extra={
                    "user_id": user_id,
                    "error": str(e)
                })
                draft = None

            span.set_attributes({
                "user.id": user_id,
                "wizard.resumed": draft is not None,
                "wizard.step": draft.step if draft else wizard.FIRST_STEP
            })
            return cls(user_id, store, draft=draft, **kwargs)

    def refresh(self) -> VerificationDraft:
        """
        Bring the session in line with the stored draft.

        Another process may have written or cleared the draft since this
        session last saw it. When our own last write failed, the in-memory
        draft wins and is written again instead.
        """
        with tracer.start_as_current_span("wizard.refresh") as span:
            span.set_attributes({"user.id": self.user_id, "wizard.unsynced": self.unsynced or ""})
            if self.unsynced == "clear":
                self._clear_stored()
                return self.draft
            if self.unsynced:
                self._persist()
                return self.draft

            try:
                stored = self.store.load(self.user_id)
            except PyMongoError as e:
                logger.error("Failed to reload verification draft", extra={
                    "user_id": self.user_id,
                    "error": str(e)
                })
                return self.draft

            # A missing draft was submitted or abandoned elsewhere
            self.draft = stored or wizard.new_draft(self.user_id)
            span.set_attribute("wizard.step", self.draft.step)
            return self.draft

    # State views

    @property
    def step(self) -> int:
        return self.draft.step

    def missing(self) -> List[str]:
        return wizard.missing_for_step(self.draft)

    def can_advance(self) -> bool:
        return wizard.can_advance(self.draft)

    def is_complete(self) -> bool:
        return wizard.is_complete(self.draft)

    def options(self) -> Dict[str, List[Dict[str, Any]]]:
        """
        Option lists for the cascading selectors, derived from the saved codes.

        Codes that no longer resolve give empty lists.
        """
        index = self.geography_index
        province_code = self.draft.selected_province_code
        city_code = self.draft.selected_city_code

        provinces = [
            {"code": p.code, "name": p.name, "region": index.region_name(p.region_code)}
            for p in index.provinces()
        ]
        cities = [
            {"code": c.code, "name": c.name}
            for c in (index.cities(province_code) if province_code else [])
        ]
        tenants = []
        if province_code and city_code:
            try:
                tenants = self._tenant_options(province_code, city_code)
            except PyMongoError as e:
                logger.error("Tenant directory read failed, offering no tenants", extra={
                    "user_id": self.user_id,
                    "province_code": province_code,
                    "city_code": city_code,
                    "error": str(e)
                })

        return {"provinces": provinces, "cities": cities, "tenants": tenants}

    def _tenant_options(self, province_code: str, city_code: str) -> List[Dict[str, Any]]:
        tenants = self.directory.for_city_codes(self.geography_index, province_code, city_code)
        entries = reconcile(self.geography_index, province_code, city_code, tenants)

        options = []
        seen = set()
        for entry in entries:
            if entry.tenant is None or entry.status != CoverageStatus.LIVE.value:
                continue
            if entry.tenant.tenant_id in seen:
                continue
            seen.add(entry.tenant.tenant_id)
            options.append({
                "tenantId": entry.tenant.tenant_id,
                "name": entry.unit.name,
                "barangayCode": entry.unit.code,
                "status": entry.status
            })
        return options

    def to_dict(self) -> Dict[str, Any]:
        """State for API responses, without image payloads."""
        return {
            "draft": self.draft.summary(),
            "canAdvance": self.can_advance(),
            "missing": self.missing(),
            "captureError": self.capture_error.model_dump() if self.capture_error else None,
            "options": self.options()
        }

    # Persistence

    def _apply(self, draft: VerificationDraft) -> VerificationDraft:
        self.draft = draft
        self._persist()
        return draft

    def _persist(self) -> None:
        try:
            self.store.save(self.draft)
        except PersistenceFailure as e:
            self.unsynced = e.operation
            logger.error("Verification draft write failed", extra={
                "user_id": self.user_id,
                "step": self.draft.step,
                "operation": e.operation,
                "error": str(e.cause)
            })
        else:
            self.unsynced = None

    def _clear_stored(self) -> None:
        try:
            self.store.clear(self.user_id)
        except PersistenceFailure as e:
            self.unsynced = e.operation
            logger.error("Verification draft removal failed", extra={
                "user_id": self.user_id,
                "error": str(e.cause)
            })
        else:
            self.unsynced = None

    def _audit(self, entity: str, action: str, details: Optional[Dict[str, Any]] = None) -> None:
        if self.audit_service is None:
            return
        try:
            self.audit_service.log_action(
                user_id=self.user_id,
                entity=entity,
                entity_id=self.user_id,
                action=action,
                tenant_id=self.draft.tenant_id,
                details=details
            )
        except Exception as e:
            logger.error("Audit entry for verification failed", extra={
                "user_id": self.user_id,
                "action": action,
                "error": str(e)
            })

    # Step 1

    def select_jurisdiction(
        self,
        province_code: Optional[str] = None,
        city_code: Optional[str] = None,
        tenant_id: Optional[str] = None
    ) -> VerificationDraft:
        """
        Update the cascading selectors. Fields left as None keep their value.

        Raises:
            InvalidSelection: A city outside the selected province, or a
                tenant that is not offered for the selected city
        """
        with tracer.start_as_current_span("wizard.select_jurisdiction") as span:
            draft = self.draft

            if province_code is not None:
                if province_code and self.geography_index.province_name(province_code) is None:
                    raise InvalidSelection("provinceCode", f"Unknown province: {province_code}")
                draft = wizard.select_province(draft, province_code or None)

            if city_code is not None:
                if city_code and self.geography_index.resolve_city(draft.selected_province_code, city_code) is None:
                    raise InvalidSelection("cityCode", f"City {city_code} is not in the selected province")
                draft = wizard.select_city(draft, city_code or None)

            if tenant_id is not None:
                if tenant_id:
                    offered = set()
                    if draft.selected_province_code and draft.selected_city_code:
                        try:
                            offered = {
                                t["tenantId"]
                                for t in self._tenant_options(draft.selected_province_code, draft.selected_city_code)
                            }
                        except PyMongoError as e:
                            logger.error("Tenant directory read failed during selection", extra={
                                "user_id": self.user_id,
                                "tenant_id": tenant_id,
                                "error": str(e)
                            })
                            raise InvalidSelection("tenantId", "Tenant list is unavailable, try again") from e
                    if tenant_id not in offered:
                        raise InvalidSelection("tenantId", f"Tenant {tenant_id} is not available for the selected city")
                draft = wizard.select_tenant(draft, tenant_id)

            span.set_attributes({"wizard.step": draft.step, "tenant.id": draft.tenant_id or ""})
            return self._apply(draft)

    # Step 2

    def set_biodata(
        self,
        birth_date: Optional[str] = None,
        mothers_maiden_name: Optional[str] = None
    ) -> VerificationDraft:
        return self._apply(wizard.set_biodata(self.draft, birth_date, mothers_maiden_name))

    # Navigation

    def next(self) -> VerificationDraft:
        """
        Guarded forward transition.

        Raises:
            GuardNotSatisfied: The current step is incomplete
            InvalidTransition: Already at step 5
        """
        with tracer.start_as_current_span("wizard.next") as span:
            span.set_attribute("wizard.from_step", self.draft.step)
            draft = wizard.advance(self.draft)
            span.set_attribute("wizard.step", draft.step)
            return self._apply(draft)

    def back(self) -> VerificationDraft:
        """Backward transition. Always allowed, keeps captured data."""
        with tracer.start_as_current_span("wizard.back") as span:
            span.set_attribute("wizard.from_step", self.draft.step)
            return self._apply(wizard.retreat(self.draft))

    # Captures

    def _tenant_centroid(self) -> Optional[Coordinates]:
        """Centroid of the selected tenant. None falls back to the default centroid."""
        if not self.draft.tenant_id:
            return None
        try:
            tenant = self.directory.get(self.draft.tenant_id)
        except PyMongoError as e:
            logger.error("Tenant directory read failed, using default centroid", extra={
                "user_id": self.user_id,
                "tenant_id": self.draft.tenant_id,
                "error": str(e)
            })
            return None
        return tenant.centroid if tenant else None

    def capture_location(self, lat: float, lng: float, accuracy: Optional[float] = None) -> VerificationDraft:
        """
        Record a location fix with its advisory distance to the tenant centroid.

        The distance is evidence for the adjudicator and never blocks progress.
        """
        with tracer.start_as_current_span("wizard.capture_location") as span:
            distance = geofence.evaluate(lat, lng, self._tenant_centroid(), self.default_centroid)
            span.set_attribute("geofence.distance_km", distance)
            self.capture_error = None
            return self._apply(wizard.record_location(self.draft, lat, lng, distance, accuracy))

    def capture_document(self, image: str) -> VerificationDraft:
        """
        Raises:
            InvalidCapture: Payload is not a usable image encoding
        """
        payload = wizard.normalize_image(image, self.max_image_bytes)
        self.capture_error = None
        return self._apply(wizard.record_document(self.draft, payload))

    def capture_selfie(self, image: str) -> VerificationDraft:
        """
        Raises:
            InvalidCapture: Payload is not a usable image encoding
        """
        payload = wizard.normalize_image(image, self.max_image_bytes)
        self.capture_error = None
        return self._apply(wizard.record_selfie(self.draft, payload))

    def report_capture_error(self, kind: str, code: str, message: Optional[str] = None) -> CaptureError:
        """
        Record a client-side capture failure as a visible, retryable error.

        The draft is untouched; the step guard simply stays unsatisfied.
        """
        denied = wizard.CaptureDenied(kind, code, message)
        self.capture_error = denied.to_capture_error()
        logger.info("Capture failure reported", extra={
            "user_id": self.user_id,
            "step": self.draft.step,
            "kind": denied.kind,
            "code": denied.code
        })
        return self.capture_error

    # Terminal outcomes

    def abandon(self) -> None:
        """Explicit abandonment deletes the draft and restarts at step 1."""
        with tracer.start_as_current_span("wizard.abandon"):
            self._audit("verification_draft", "abandon", details={"step": self.draft.step})
            self._reset()

    def _reset(self) -> None:
        self._clear_stored()
        self.draft = wizard.new_draft(self.user_id)
        self.capture_error = None

    def submit(self, credential: str) -> VerificationResult:
        """
        Forward the completed draft to the adjudicator.

        Either terminal outcome clears the draft. A rejection keeps it intact
        so the resident can retry without recapturing anything.

        Raises:
            GuardNotSatisfied: Some step is incomplete
            InvalidTransition: The wizard is not on the last step
            SubmissionRejected: The adjudicator did not return an outcome
        """
        with tracer.start_as_current_span("wizard.submit") as span:
            span.set_attribute("wizard.step", self.draft.step)

            for step in sorted(wizard.STEP_GUARDS):
                missing = wizard.missing_for_step(self.draft, step)
                if missing:
                    raise wizard.GuardNotSatisfied(step, missing)
            if self.draft.step != wizard.LAST_STEP:
                raise wizard.InvalidTransition("Submit is only available on the last step")

            logger.info("Submitting verification", extra={
                "user_id": self.user_id,
                "tenant_id": self.draft.tenant_id
            })

            try:
                result = self.gateway.submit(self.draft, credential)
            except SubmissionRejected as e:
                span.set_attribute("adjudicator.status", "rejected")
                self._audit("verification_submission", "reject", details={
                    "reason": e.reason,
                    "statusCode": e.status_code
                })
                raise

            span.set_attribute("adjudicator.status", result.status)
            self._audit("verification_submission", "submit", details={
                "status": result.status,
                "distanceKm": self.draft.geo.distance_km if self.draft.geo else None
            })
            self._reset()
            return result


class WizardSessions:
    """
    Process-local registry of live wizard sessions.

    Cached sessions are refreshed from the draft store on every lookup, so
    writes made by other processes are never overwritten with stale state.
    A session whose last write failed keeps its in-memory draft instead.
    Least recently used sessions are evicted first.
    """

    def __init__(self, factory: Callable[[str], VerificationWizard], max_sessions: int = 1024):
        self.factory = factory
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[str, VerificationWizard]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, user_id: str) -> VerificationWizard:
        with self._lock:
            session = self._sessions.get(user_id)
            if session is not None:
                self._sessions.move_to_end(user_id)

        if session is not None:
            session.refresh()
            return session

        # Resume outside the lock; it may hit the database
        session = self.factory(user_id)

        with self._lock:
            existing = self._sessions.get(user_id)
            if existing is not None:
                return existing
            self._sessions[user_id] = session
            while len(self._sessions) > self.max_sessions:
                self._sessions.popitem(last=False)
            return session

    def discard(self, user_id: str) -> None:
        with self._lock:
            self._sessions.pop(user_id, None)

    def __len__(self) -> int:
        return len(self._sessions)
