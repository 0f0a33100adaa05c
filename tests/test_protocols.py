"""Tests for the collection and record protocols."""

from ninja_unimodel.adapters.memory import MemoryModel
from ninja_unimodel.adapters.mongo import MongoDocument, MongoModel
from ninja_unimodel.protocols import CollectionHandle, RecordHandle, RecordSource
from ninja_unimodel.stream import ListDocumentStream


def test_memory_model_is_collection_handle():
    assert isinstance(MemoryModel("Animal"), CollectionHandle)


def test_mongo_model_is_collection_handle():
    assert isinstance(MongoModel("Animal"), CollectionHandle)


def test_documents_are_record_handles():
    model = MemoryModel("Animal")
    assert isinstance(model.create({"name": "Rex"}), RecordHandle)
    assert isinstance(MongoDocument(MongoModel("Animal"), {}), RecordHandle)


def test_document_stream_is_record_source():
    assert isinstance(ListDocumentStream([]), RecordSource)


def test_plain_list_is_not_record_source():
    assert not isinstance([], RecordSource)
