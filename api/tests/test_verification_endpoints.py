# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Tests for the resident verification wizard endpoints.
"""

import json
import pytest

from models.entities import VerificationResult
from services.adjudicator import SubmissionRejected, UNREACHABLE_REASON
from services.drafts import DRAFT_FIELD
from services.mongodb import USERS, TENANT_DIRECTORY
from fakes import BULACAN, MALOLOS, CAINTA, image_payload

DRAFT = '/api/verification/draft'


class TestDraftEndpoints:
    """Test cases for wizard state and transitions."""

    def put(self, client, headers, path, body):
        return client.put(f'{DRAFT}/{path}', json=body, headers=headers)

    def post(self, client, headers, path, body=None):
        return client.post(f'{DRAFT}/{path}', json=body if body is not None else {}, headers=headers)

    def fill_to_step(self, client, headers, step):
        """Drive the wizard forward through the API."""
        self.put(client, headers, 'jurisdiction', {
            "provinceCode": BULACAN, "cityCode": MALOLOS, "tenantId": "malolos-atlag"
        })
        if step == 1:
            return
        self.post(client, headers, 'next')
        self.put(client, headers, 'biodata', {"birthDate": "1990-01-01", "mothersMaidenName": "Santos"})
        if step == 2:
            return
        self.post(client, headers, 'next')
        self.post(client, headers, 'location', {"lat": 14.8433, "lng": 120.8114, "accuracy": 12})
        if step == 3:
            return
        self.post(client, headers, 'next')
        self.post(client, headers, 'document', {"image": image_payload()})
        if step == 4:
            return
        self.post(client, headers, 'next')
        self.post(client, headers, 'selfie', {"image": image_payload()})

    def test_get_fresh_draft(self, client, resident_headers):
        """Test a new resident starts at step 1 with province options."""
        response = client.get(DRAFT, headers=resident_headers)

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['draft']['step'] == 1
        assert data['canAdvance'] is False
        assert data['missing'] == ['tenantId']
        assert len(data['options']['provinces']) == 5
        assert data['options']['cities'] == []
        assert 'jurisdiction' in data['_links']
        assert 'next' not in data['_links']
        assert 'back' not in data['_links']

    def test_requires_resident_permission(self, client, admin_headers):
        """Test administrators cannot drive a resident wizard."""
        response = client.get(DRAFT, headers=admin_headers)
        assert response.status_code == 403

    def test_requires_token(self, client):
        """Test the wizard requires authentication."""
        assert client.get(DRAFT).status_code == 401

    def test_select_jurisdiction_cascade(self, client, resident_headers):
        """Test selector options follow the selected codes."""
        response = self.put(client, resident_headers, 'jurisdiction', {"provinceCode": BULACAN, "cityCode": MALOLOS})

        data = json.loads(response.data)
        assert data['draft']['selectedProvinceCode'] == BULACAN
        assert [t['tenantId'] for t in data['options']['tenants']] == ['malolos-atlag', 'malolos-san-vicente']

        response = self.put(client, resident_headers, 'jurisdiction', {"tenantId": "malolos-atlag"})
        data = json.loads(response.data)
        assert data['canAdvance'] is True
        assert 'next' in data['_links']

    def test_city_outside_province(self, client, resident_headers):
        """Test a city from another province is rejected."""
        response = self.put(client, resident_headers, 'jurisdiction', {"provinceCode": BULACAN, "cityCode": CAINTA})

        assert response.status_code == 422
        data = json.loads(response.data)
        assert data['errors'][0]['field'] == 'cityCode'
        assert data['errors'][0]['type'] == 'invalid_selection'

    def test_next_blocked_by_guard(self, client, resident_headers):
        """Test next reports the missing fields of the current step."""
        response = self.post(client, resident_headers, 'next')

        assert response.status_code == 422
        data = json.loads(response.data)
        assert data['step'] == 1
        assert data['errors'] == [
            {"field": "tenantId", "message": "Field is required for this step", "type": "missing"}
        ]

    def test_birth_date_required_with_maiden_name(self, client, resident_headers):
        """Test step 2 cannot be passed with only a maiden name."""
        self.fill_to_step(client, resident_headers, 1)
        self.post(client, resident_headers, 'next')
        self.put(client, resident_headers, 'biodata', {"birthDate": "", "mothersMaidenName": "Santos"})

        response = self.post(client, resident_headers, 'next')

        assert response.status_code == 422
        assert [e['field'] for e in json.loads(response.data)['errors']] == ['birthDate']

    def test_invalid_birth_date_format(self, client, resident_headers):
        """Test malformed birth dates are rejected at the request layer."""
        response = self.put(client, resident_headers, 'biodata', {"birthDate": "January 1"})

        assert response.status_code == 422
        assert json.loads(response.data)['type'].endswith('/validation-error')

    def test_back_keeps_data(self, client, resident_headers):
        """Test going back keeps the entered biodata."""
        self.fill_to_step(client, resident_headers, 2)

        response = self.post(client, resident_headers, 'back')

        data = json.loads(response.data)
        assert data['draft']['step'] == 1
        assert data['draft']['birthDate'] == '1990-01-01'
        assert data['draft']['tenantId'] == 'malolos-atlag'

    def test_location_capture_records_distance(self, client, resident_headers):
        """Test the fix is stored with its distance to the tenant centroid."""
        self.fill_to_step(client, resident_headers, 3)

        data = json.loads(client.get(DRAFT, headers=resident_headers).data)

        assert data['draft']['step'] == 3
        assert data['draft']['geo']['distanceKm'] == 0
        assert data['draft']['geo']['accuracy'] == 12
        assert data['canAdvance'] is True

    def test_directory_outage_does_not_abort_wizard(self, client, app, resident_headers):
        """Test location capture and state reads survive an unreadable tenant directory."""
        self.fill_to_step(client, resident_headers, 2)
        self.post(client, resident_headers, 'next')
        app.mongodb_service.get_collection(TENANT_DIRECTORY).fail_reads = True

        response = self.post(client, resident_headers, 'location', {"lat": 14.5995, "lng": 120.9842})

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['draft']['geo']['distanceKm'] == 0
        assert data['options']['tenants'] == []
        assert client.get(DRAFT, headers=resident_headers).status_code == 200

    def test_invalid_image(self, client, resident_headers):
        """Test malformed images are rejected."""
        self.fill_to_step(client, resident_headers, 3)
        self.post(client, resident_headers, 'next')

        response = self.post(client, resident_headers, 'document', {"image": "not base64!"})

        assert response.status_code == 422
        assert json.loads(response.data)['type'].endswith('/invalid-capture')

    def test_capture_error_reported(self, client, resident_headers):
        """Test client capture failures are visible in the state."""
        response = self.post(client, resident_headers, 'capture-error', {"kind": "location", "code": "permission_denied"})

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['captureError']['kind'] == 'location'
        assert 'Permission was denied' in data['captureError']['message']

    def test_draft_persisted_and_resumed(self, client, app, resident_headers):
        """Test a fresh session resumes from the stored draft."""
        self.fill_to_step(client, resident_headers, 2)
        app.wizard_sessions.discard('resident-1')

        data = json.loads(client.get(DRAFT, headers=resident_headers).data)

        assert data['draft']['step'] == 2
        assert data['draft']['mothersMaidenName'] == 'Santos'
        assert len(data['options']['tenants']) == 2

    def test_images_not_returned(self, client, resident_headers):
        """Test captured images are never echoed back."""
        self.fill_to_step(client, resident_headers, 5)

        response = client.get(DRAFT, headers=resident_headers)

        data = json.loads(response.data)
        assert data['draft']['idImage'] is True
        assert data['draft']['selfieImage'] is True
        assert image_payload(data_url=False) not in response.get_data(as_text=True)
        assert 'submit' in data['_links']

    def test_abandon(self, client, app, resident_headers):
        """Test abandoning deletes the stored draft."""
        self.fill_to_step(client, resident_headers, 2)

        response = client.delete(DRAFT, headers=resident_headers)

        assert response.status_code == 200
        assert json.loads(response.data)['draft']['step'] == 1
        user = app.mongodb_service.get_collection(USERS).find_one({"_id": "resident-1"})
        assert DRAFT_FIELD not in user


class TestSubmitEndpoint:
    """Test cases for POST /api/verification/submit."""

    def complete(self, client, headers):
        TestDraftEndpoints().fill_to_step(client, headers, 5)

    def test_submit_verified(self, client, app, resident_headers, adjudicator_gateway):
        """Test a verified outcome clears the draft."""
        self.complete(client, resident_headers)

        response = client.post('/api/verification/submit', headers=resident_headers)

        assert response.status_code == 200
        data = json.loads(response.data)
        assert data['status'] == 'verified'
        credential = adjudicator_gateway.submit.call_args[0][1]
        assert resident_headers['Authorization'] == f'Bearer {credential}'

        user = app.mongodb_service.get_collection(USERS).find_one({"_id": "resident-1"})
        assert DRAFT_FIELD not in user
        assert json.loads(client.get(DRAFT, headers=resident_headers).data)['draft']['step'] == 1

    def test_submit_pending_review(self, client, resident_headers, adjudicator_gateway):
        """Test pending review is returned with its reason."""
        adjudicator_gateway.submit.return_value = VerificationResult(status="pending_review", reason="Manual check")
        self.complete(client, resident_headers)

        data = json.loads(client.post('/api/verification/submit', headers=resident_headers).data)

        assert data['status'] == 'pending_review'
        assert data['reason'] == 'Manual check'

    def test_submit_unreachable_keeps_draft(self, client, app, resident_headers, adjudicator_gateway):
        """Test an unreachable adjudicator leaves the draft for a retry."""
        adjudicator_gateway.submit.side_effect = SubmissionRejected(UNREACHABLE_REASON)
        self.complete(client, resident_headers)

        response = client.post('/api/verification/submit', headers=resident_headers)

        assert response.status_code == 502
        data = json.loads(response.data)
        assert data['type'].endswith('/submission-rejected')
        assert data['detail'] == UNREACHABLE_REASON
        assert 'retry' in data['_links']

        user = app.mongodb_service.get_collection(USERS).find_one({"_id": "resident-1"})
        assert user[DRAFT_FIELD]['step'] == 5
        assert user[DRAFT_FIELD]['selfieImage']

    def test_submit_incomplete(self, client, resident_headers, adjudicator_gateway):
        """Test an incomplete draft cannot be submitted."""
        TestDraftEndpoints().fill_to_step(client, resident_headers, 1)
        client.post(f'{DRAFT}/next', json={}, headers=resident_headers)

        response = client.post('/api/verification/submit', headers=resident_headers)

        assert response.status_code == 422
        assert json.loads(response.data)['step'] == 2
        adjudicator_gateway.submit.assert_not_called()

    def test_submit_before_last_step(self, client, resident_headers):
        """Test submit from step 4 is an invalid transition."""
        self.complete(client, resident_headers)
        client.post(f'{DRAFT}/back', json={}, headers=resident_headers)

        response = client.post('/api/verification/submit', headers=resident_headers)

        assert response.status_code == 409
        assert json.loads(response.data)['type'].endswith('/invalid-transition')


class TestSharedDraftStorage:
    """Test two application processes serving the same resident."""

    @pytest.fixture
    def other_client(self, seeded_mongo, geography_index, auth_service, adjudicator_gateway):
        """Second application instance backed by the same database."""
        from app import create_app

        other_app = create_app(
            config_overrides={'TESTING': True, 'BASE_URL': 'https://api.example.com'},
            services={
                'mongodb_service': seeded_mongo,
                'redis_service': None,
                'auth_service': auth_service,
                'geography_index': geography_index,
                'gateway': adjudicator_gateway
            }
        )
        return other_app.test_client()

    def test_draft_written_elsewhere_is_loaded(self, client, other_client, resident_headers):
        """Test a cached session picks up progress saved by another instance."""
        assert json.loads(client.get(DRAFT, headers=resident_headers).data)['draft']['step'] == 1

        TestDraftEndpoints().fill_to_step(other_client, resident_headers, 2)

        data = json.loads(client.get(DRAFT, headers=resident_headers).data)
        assert data['draft']['step'] == 2
        assert data['draft']['tenantId'] == 'malolos-atlag'
        assert data['draft']['birthDate'] == '1990-01-01'

    def test_back_keeps_data_written_elsewhere(self, client, other_client, app, resident_headers):
        """Test navigating on a cached session never overwrites newer progress."""
        client.get(DRAFT, headers=resident_headers)
        TestDraftEndpoints().fill_to_step(other_client, resident_headers, 2)

        response = client.post(f'{DRAFT}/back', json={}, headers=resident_headers)

        assert response.status_code == 200
        stored = app.mongodb_service.get_collection(USERS).find_one({"_id": "resident-1"})[DRAFT_FIELD]
        assert stored['step'] == 1
        assert stored['tenantId'] == 'malolos-atlag'
        assert stored['birthDate'] == '1990-01-01'
        assert stored['mothersMaidenName'] == 'Santos'

    def test_abandon_elsewhere_restarts_cached_session(self, client, other_client, resident_headers):
        """Test a draft removed by another instance is not resurrected."""
        TestDraftEndpoints().fill_to_step(client, resident_headers, 2)

        other_client.delete(DRAFT, headers=resident_headers)

        data = json.loads(client.get(DRAFT, headers=resident_headers).data)
        assert data['draft']['step'] == 1
        assert data['draft']['tenantId'] is None
