import hashlib
import json
from unittest.mock import patch

import pytest

from palletry.ocw_demo import (
    FETCH_TIMEOUT_PERIOD,
    HTTP_HEADER_USER_AGENT,
    HTTP_REMOTE_REQUEST,
    UNSIGNED_TXS_PRIORITY,
    GithubInfo,
    HttpFetchingError,
    IndexingData,
    InvalidTransaction,
    NewNumber,
    OcwDemo,
    Payload,
    StorageLock,
)
from palletry.runtime import BadOrigin, Origin, System


class FakeSigner:
    def __init__(self, account=1, public=b"public-key-1"):
        self.account = account
        self.public = public

    def sign(self, message):
        return hashlib.sha256(self.public + message).digest()

    def verify(self, message, signature, public):
        return signature == hashlib.sha256(public + message).digest()


class Pool:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    def __call__(self, call, account):
        if self.fail:
            raise RuntimeError("rejected")
        self.calls.append((call, account))


GH_JSON = json.dumps(
    {"login": "demo-org", "blog": "https://blog.example.com", "public_repos": 5, "id": 9}
)


def make_demo(signer=None, pool=None, fetch=None, block=1):
    system = System(block)
    return OcwDemo(system, signer, pool if pool is not None else Pool(), fetch)


def test_submit_number_signed_records_event_and_index():
    demo = make_demo()
    demo.submit_number_signed(Origin.signed(1), 42)
    assert demo.numbers == [42]
    assert demo.system.events()[0].event == NewNumber(1, 42)
    stored = IndexingData.decode(demo.local_storage[demo.derived_key(1)])
    assert stored == IndexingData(b"submit_number_signed", 42)


def test_numbers_are_bounded():
    demo = make_demo()
    for n in range(12):
        demo.submit_number_signed(Origin.signed(1), n)
    assert demo.numbers == list(range(2, 12))


def test_origin_checks():
    demo = make_demo()
    with pytest.raises(BadOrigin):
        demo.submit_number_signed(Origin.none(), 1)
    with pytest.raises(BadOrigin):
        demo.submit_number_unsigned(Origin.signed(1), 1)
    with pytest.raises(BadOrigin):
        demo.submit_number_unsigned_with_signed_payload(
            Origin.root(), Payload(1, b"p"), b"sig"
        )


def test_submit_number_unsigned_and_payload():
    demo = make_demo()
    demo.submit_number_unsigned(Origin.none(), 5)
    demo.submit_number_unsigned_with_signed_payload(Origin.none(), Payload(6, b"p"), b"s")
    assert demo.numbers == [5, 6]
    assert [r.event for r in demo.system.events()] == [
        NewNumber(None, 5),
        NewNumber(None, 6),
    ]
    stored = IndexingData.decode(demo.local_storage[demo.derived_key(1)])
    assert stored.label == b"submit_number_unsigned_with_signed_payload"


def test_derived_key_layout():
    demo = make_demo()
    assert demo.derived_key(1) == b"ocw-demo::storage::tx/\x01\x00\x00\x00"
    assert demo.derived_key(2) != demo.derived_key(1)


@pytest.mark.parametrize("label", [b"submit_number_signed", b"x" * 100, b""])
def test_indexing_data_round_trip(label):
    data = IndexingData(label, 2**40 + 3)
    assert IndexingData.decode(data.encode()) == data


def test_indexing_data_truncated():
    encoded = IndexingData(b"abc", 7).encode()
    with pytest.raises(ValueError):
        IndexingData.decode(encoded[:-1])


def test_github_info_from_json():
    info = GithubInfo.from_json(GH_JSON)
    assert info == GithubInfo(b"demo-org", b"https://blog.example.com", 5)
    assert str(info) == "{ login: demo-org, blog: https://blog.example.com, public_repos: 5 }"


def test_github_info_missing_field():
    with pytest.raises(ValueError):
        GithubInfo.from_json(json.dumps({"login": "a", "blog": "b"}))


def test_worker_signed_tx():
    pool = Pool()
    demo = make_demo(signer=FakeSigner(), pool=pool)
    demo.offchain_worker(1)
    assert pool.calls == [(("submit_number_signed", 1), 1)]


def test_worker_without_signer_logs_error(caplog):
    pool = Pool()
    demo = make_demo(pool=pool)
    demo.offchain_worker(1)
    assert pool.calls == []
    assert "NoLocalAcctForSigning" in caplog.text


def test_worker_unsigned_tx_is_valid():
    pool = Pool()
    demo = make_demo(pool=pool)
    demo.offchain_worker(2)
    assert pool.calls == [(("submit_number_unsigned", 2), None)]
    valid = demo.validate_unsigned(pool.calls[0][0])
    assert valid.priority == UNSIGNED_TXS_PRIORITY
    assert valid.longevity == 3
    assert valid.propagate is True


def test_worker_unsigned_tx_failure_logged(caplog):
    demo = make_demo(pool=Pool(fail=True))
    demo.offchain_worker(2)
    assert "OffchainUnsignedTxError" in caplog.text


def test_worker_signed_payload_validates():
    pool = Pool()
    signer = FakeSigner()
    demo = make_demo(signer=signer, pool=pool)
    demo.offchain_worker(3)
    (call, account), = pool.calls
    assert account is None
    assert call[0] == "submit_number_unsigned_with_signed_payload"
    assert call[1] == Payload(3, signer.public)
    assert demo.validate_unsigned(call).provides != demo.validate_unsigned(
        ("submit_number_unsigned", 3)
    ).provides


def test_bad_signature_rejected():
    demo = make_demo(signer=FakeSigner())
    call = ("submit_number_unsigned_with_signed_payload", Payload(3, b"k"), b"bogus")
    with pytest.raises(InvalidTransaction) as info:
        demo.validate_unsigned(call)
    assert info.value.reason == InvalidTransaction.BAD_PROOF


def test_unknown_call_rejected():
    demo = make_demo()
    with pytest.raises(InvalidTransaction) as info:
        demo.validate_unsigned(("submit_number_signed", 1))
    assert info.value.reason == InvalidTransaction.CALL


def test_worker_fetches_and_caches():
    requests = []

    def fetch(url, headers, timeout):
        requests.append((url, headers, timeout))
        return 200, GH_JSON.encode()

    demo = make_demo(fetch=fetch)
    demo.offchain_worker(4)
    demo.offchain_worker(8)
    assert requests == [
        (HTTP_REMOTE_REQUEST, {"User-Agent": HTTP_HEADER_USER_AGENT}, FETCH_TIMEOUT_PERIOD / 1000)
    ]
    assert demo.fetch_github_info() == GithubInfo.from_json(GH_JSON)
    assert b"ocw-demo::lock" not in demo.local_storage


@pytest.mark.parametrize(
    "fetch",
    [
        lambda url, headers, timeout: (404, b"{}"),
        lambda url, headers, timeout: (200, b"not json"),
        lambda url, headers, timeout: (200, b"\xff\xfe"),
    ],
)
def test_fetch_n_parse_errors(fetch):
    demo = make_demo(fetch=fetch)
    with pytest.raises(HttpFetchingError):
        demo.fetch_n_parse()


def test_fetch_exception_becomes_http_error():
    def fetch(url, headers, timeout):
        raise OSError("down")

    demo = make_demo(fetch=fetch)
    with pytest.raises(HttpFetchingError):
        demo.fetch_github_info()
    assert b"ocw-demo::lock" not in demo.local_storage


def test_fetch_skipped_while_locked():
    requests = []

    def fetch(url, headers, timeout):
        requests.append(url)
        return 200, GH_JSON.encode()

    demo = make_demo(fetch=fetch)
    held = StorageLock(demo.local_storage, b"ocw-demo::lock", 1, 3, 4000).try_lock()
    assert held is not None
    assert demo.fetch_github_info() is None
    assert requests == []
    held.release()
    assert demo.fetch_github_info() == GithubInfo.from_json(GH_JSON)


def test_storage_lock_exclusive_until_released():
    storage = {}
    first = StorageLock(storage, b"k", 1, 3, 4000).try_lock()
    assert first is not None
    assert StorageLock(storage, b"k", 1, 3, 4000).try_lock() is None
    with first:
        pass
    assert StorageLock(storage, b"k", 1, 3, 4000).try_lock() is not None


def test_storage_lock_expires_after_block_and_time():
    storage = {}
    with patch("time.monotonic", return_value=0.0):
        assert StorageLock(storage, b"k", 1, 3, 4000).try_lock() is not None
    with patch("time.monotonic", return_value=10.0):
        assert StorageLock(storage, b"k", 4, 3, 4000).try_lock() is None
        assert StorageLock(storage, b"k", 5, 3, 4000).try_lock() is not None
    with patch("time.monotonic", return_value=10.0):
        assert StorageLock(storage, b"k", 100, 3, 4000).try_lock() is None