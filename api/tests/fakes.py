# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
In-memory doubles and builders shared by the unit and acceptance suites.
"""

import copy
import base64
from types import SimpleNamespace
from unittest.mock import MagicMock
from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from models.entities import TenantRecord
from services.mongodb import MongoDBService

BULACAN = "031400000"
MALOLOS = "031410000"
MARILAO = "031412000"
RIZAL = "045800000"
CAINTA = "045805000"


class FakeCollection:
    """In-memory stand-in for the parts of a pymongo collection the services use."""

    def __init__(self, name):
        self.name = name
        self.documents = []
        self.indexes = []
        self.fail_writes = False
        self.fail_reads = False

    @staticmethod
    def _matches(document, query):
        return all(document.get(key) == value for key, value in (query or {}).items())

    @staticmethod
    def _project(document, projection):
        if not projection:
            return document
        return {k: v for k, v in document.items() if k == "_id" or projection.get(k)}

    def _check_write(self):
        if self.fail_writes:
            raise ServerSelectionTimeoutError("write refused")

    def _check_read(self):
        if self.fail_reads:
            raise ServerSelectionTimeoutError("read refused")

    def find(self, query=None, projection=None):
        self._check_read()
        return [
            self._project(copy.deepcopy(d), projection)
            for d in self.documents if self._matches(d, query)
        ]

    def find_one(self, query=None, projection=None):
        self._check_read()
        for document in self.documents:
            if self._matches(document, query):
                return self._project(copy.deepcopy(document), projection)
        return None

    def insert_one(self, document):
        self._check_write()
        document.setdefault("_id", ObjectId())
        if any(d["_id"] == document["_id"] for d in self.documents):
            raise DuplicateKeyError("duplicate key")
        self.documents.append(copy.deepcopy(document))
        return SimpleNamespace(inserted_id=document["_id"])

    @staticmethod
    def _apply(document, update):
        for key, value in update.get("$set", {}).items():
            document[key] = copy.deepcopy(value)
        for key in update.get("$unset", {}):
            document.pop(key, None)

    def update_one(self, query, update, upsert=False):
        self._check_write()
        for document in self.documents:
            if self._matches(document, query):
                self._apply(document, update)
                return SimpleNamespace(matched_count=1, modified_count=1, upserted_id=None)
        if upsert:
            document = dict(query)
            self._apply(document, update)
            self.documents.append(document)
            return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=document.get("_id"))
        return SimpleNamespace(matched_count=0, modified_count=0, upserted_id=None)

    def find_one_and_update(self, query, update, return_document=ReturnDocument.BEFORE):
        self._check_write()
        for document in self.documents:
            if self._matches(document, query):
                before = copy.deepcopy(document)
                self._apply(document, update)
                return copy.deepcopy(document) if return_document == ReturnDocument.AFTER else before
        return None

    def create_index(self, keys, **kwargs):
        self.indexes.append((keys, kwargs))
        return str(keys)

    def index_information(self):
        return {str(keys): kwargs for keys, kwargs in self.indexes}


class FakeDatabase(dict):
    def __missing__(self, name):
        collection = self[name] = FakeCollection(name)
        return collection


def make_mongo_service():
    """MongoDBService running against in-memory collections."""
    service = MongoDBService("mongodb://localhost:27017/test", "test")
    service._database = FakeDatabase()
    service._client = MagicMock()
    service._client.admin.command.return_value = {"ok": 1}
    service._client.server_info.return_value = {"version": "7.0.0"}
    return service


def tenant_document(tenant_id, barangay, city="City of Malolos", province="Bulacan",
                    status="Live", centroid=None, **extra):
    document = {
        "_id": tenant_id,
        "tenantId": tenant_id,
        "barangay": barangay,
        "city": city,
        "province": province,
        "region": "Region III (Central Luzon)",
        "status": status,
        "centroid": centroid
    }
    document.update(extra)
    return document


def tenant_record(tenant_id, barangay, city="City of Malolos", province="Bulacan", status="Live", **extra):
    return TenantRecord.model_validate(tenant_document(tenant_id, barangay, city, province, status, **extra))


def image_payload(size=64, data_url=True):
    encoded = base64.b64encode(b"\xff\xd8\xff" + b"\x00" * size).decode("ascii")
    return f"data:image/jpeg;base64,{encoded}" if data_url else encoded


def bearer(auth_service, user_id, role):
    """Authorization header for a freshly minted access token."""
    token = auth_service.generate_access_token(user_id, role=role)["access_token"]
    return {"Authorization": f"Bearer {token}"}
