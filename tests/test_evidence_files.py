import io
import os

import pytest
from werkzeug.datastructures import FileStorage

from claimdesk.errors import DependencyError, Forbidden, NotFound, ValidationError
from claimdesk.models import ClaimFile
from claimdesk.services import approve_claim
from claimdesk.services import evidence_files
from claimdesk.services.evidence_files import attach_files, evidence_storage_key, list_files, remove_file

JPEG = b"\xff\xd8\xff\xe0" + b"0" * 64


def _upload(name="bumper.jpg", data=JPEG):
    return FileStorage(stream=io.BytesIO(data), filename=name)


def test_storage_key_layout(app):
    from datetime import datetime

    key = evidence_storage_key("Front Bumper (1).JPG", now=datetime(2026, 1, 5, 10, 0))
    assert key.startswith("evidence/202601/Front_Bumper_1_")
    assert key.endswith(".jpg")


def test_attach_and_list(app, make_claim, ids):
    claim = make_claim()
    rows = attach_files(ids["north"], claim.id, [_upload("a.jpg"), _upload("b.pdf", b"%PDF-1.4 test")])

    assert [r.file_type for r in rows] == ["image/jpeg", "application/pdf"]
    for row in rows:
        assert row.public_url == f"https://files.example.test/{row.storage_key}"
        path = os.path.join(app.config["EVIDENCE_STORAGE_DIR"], row.storage_key)
        assert os.path.exists(path)

    assert {f.file_name for f in list_files(ids["north2"], claim.id)} == {"a.jpg", "b.pdf"}


def test_rejects_disallowed_type(make_claim, ids):
    claim = make_claim()
    with pytest.raises(ValidationError):
        attach_files(ids["north"], claim.id, [_upload("script.exe")])
    assert ClaimFile.query.count() == 0


def test_rejects_too_many_files(make_claim, ids):
    claim = make_claim()
    with pytest.raises(ValidationError):
        attach_files(ids["north"], claim.id, [_upload(f"{i}.png") for i in range(6)])


def test_rejects_oversized_file(app, make_claim, ids):
    app.config["EVIDENCE_MAX_FILE_SIZE"] = 10
    claim = make_claim()
    with pytest.raises(ValidationError):
        attach_files(ids["north"], claim.id, [_upload()])


def test_rejects_empty_upload_list(make_claim, ids):
    claim = make_claim()
    with pytest.raises(ValidationError):
        attach_files(ids["north"], claim.id, [])


def test_other_branch_cannot_attach(make_claim, ids):
    claim = make_claim()
    with pytest.raises(Forbidden):
        attach_files(ids["south"], claim.id, [_upload()])


def test_closed_claim_is_read_only_for_branch(make_claim, ids):
    claim = make_claim(submit_now=True)
    approve_claim(ids["admin"], claim.id)
    with pytest.raises(Forbidden):
        attach_files(ids["north"], claim.id, [_upload()])
    assert len(attach_files(ids["admin"], claim.id, [_upload()])) == 1


def test_storage_failure_is_dependency_error(make_claim, ids, monkeypatch):
    claim = make_claim()

    def broken(key, data):
        raise OSError("disk full")

    monkeypatch.setattr(evidence_files, "store_bytes", broken)
    with pytest.raises(DependencyError):
        attach_files(ids["north"], claim.id, [_upload()])
    assert ClaimFile.query.count() == 0


def test_remove_file(make_claim, ids):
    claim = make_claim()
    row = attach_files(ids["north"], claim.id, [_upload()])[0]

    with pytest.raises(Forbidden):
        remove_file(ids["north2"], row.id)

    remove_file(ids["north"], row.id)
    assert list_files(ids["north"], claim.id) == []

    with pytest.raises(NotFound):
        remove_file(ids["north"], row.id)


def test_upload_over_http(client, login_as, make_claim):
    claim = make_claim()
    login_as("north")
    resp = client.post(
        f"/api/claims/{claim.id}/files",
        data={"files": [(io.BytesIO(JPEG), "door.jpg")]},
        content_type="multipart/form-data",
    )
    assert resp.status_code == 201
    assert resp.get_json()["data"][0]["file_name"] == "door.jpg"

    listed = client.get(f"/api/claims/{claim.id}/files").get_json()["data"]
    assert len(listed) == 1
