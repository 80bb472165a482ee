import boto3
import pytest
from botocore.stub import Stubber

from solicitation_agent.errors import PersistenceError
from solicitation_agent.storage.blobs import InMemoryDocumentStore, S3DocumentStore, upload_prefix


@pytest.fixture
def s3_client():
    return boto3.client(
        "s3",
        region_name="us-east-1",
        endpoint_url="https://objects.example",
        aws_access_key_id="testing",
        aws_secret_access_key="testing",
    )


def test_upload_prefix_namespaces_by_notice() -> None:
    assert upload_prefix("N1") == "contract_docs/N1/"


def test_in_memory_list_is_one_level_deep() -> None:
    store = InMemoryDocumentStore()
    store.put("contract_docs/N1/b.pdf", b"b")
    store.put("contract_docs/N1/a.pdf", b"a")
    store.put("contract_docs/N1/nested/c.pdf", b"c")
    store.put("contract_docs/N10/d.pdf", b"d")

    assert store.list("contract_docs/N1/") == ["a.pdf", "b.pdf"]
    assert store.list("contract_docs/N1/", limit=1) == ["a.pdf"]


def test_in_memory_urls_only_for_existing_objects() -> None:
    store = InMemoryDocumentStore(base_url="https://storage.local/")
    store.put("contract_docs/N1/my plan.pdf", b"%PDF")

    assert store.public_url("contract_docs/N1/my plan.pdf") == "https://storage.local/contract_docs/N1/my%20plan.pdf"
    assert "expires=" in store.signed_url("contract_docs/N1/my plan.pdf", expires_in=60)
    assert store.public_url("contract_docs/N1/missing.pdf") is None
    assert store.signed_url("contract_docs/N1/missing.pdf", expires_in=60) is None


def test_s3_list_strips_prefix(s3_client) -> None:
    store = S3DocumentStore("bids", s3_client)
    with Stubber(s3_client) as stubber:
        stubber.add_response(
            "list_objects_v2",
            {"Contents": [{"Key": "contract_docs/N1/bid-form.pdf"}, {"Key": "contract_docs/N1/plans.PDF"}]},
            {"Bucket": "bids", "Prefix": "contract_docs/N1/", "Delimiter": "/", "MaxKeys": 100},
        )

        names = store.list("contract_docs/N1/")

    assert names == ["bid-form.pdf", "plans.PDF"]


def test_s3_errors_become_persistence_errors(s3_client) -> None:
    store = S3DocumentStore("bids", s3_client)
    with Stubber(s3_client) as stubber:
        stubber.add_client_error("list_objects_v2", service_error_code="NoSuchBucket", http_status_code=404)

        with pytest.raises(PersistenceError):
            store.list("contract_docs/N1/")


def test_s3_urls(s3_client) -> None:
    store = S3DocumentStore("bids", s3_client)

    assert store.public_url("contract_docs/N1/bid-form.pdf") == "https://objects.example/bids/contract_docs/N1/bid-form.pdf"
    signed = store.signed_url("contract_docs/N1/bid-form.pdf", expires_in=3600)
    assert "bids" in signed
    assert "contract_docs/N1/bid-form.pdf?" in signed
    assert "Expires" in signed
