import time

import pytest

from nostrelay.utils import (
    host_str,
    is_hex,
    is_lower_hex,
    is_nip19,
    nip19_to_hex,
    unix_time,
)

HEXKEY = "3bf0c63fcb93463407af97a5e5ee64fa883d107ef9e558472c4eb9aaaefa459d"
NIP19KEY = "npub180cvv07tjdrrgpa0j7j7tmnyl2yr6yr7l8j4s3evf6u64th6gkwsyjh6w6"


def test_lower_hex():
    assert is_lower_hex("abcd0123")


def test_lower_hex_rejects_upper_and_non_hex():
    assert not is_lower_hex("ABCD0123")
    assert not is_lower_hex("abcg")


def test_is_hex_accepts_both_cases():
    assert is_hex("abcdefABCDEF0123456789")
    assert not is_hex("xyz")


def test_nip19():
    assert not is_nip19(HEXKEY)
    assert is_nip19(NIP19KEY)


def test_nip19_note_prefix():
    assert is_nip19("note1abc")


def test_nip19_hex():
    assert nip19_to_hex(NIP19KEY) == HEXKEY


def test_nip19_hex_upper_case_input():
    assert nip19_to_hex(NIP19KEY.upper()) == HEXKEY


def test_nip19_hex_bad_checksum():
    broken = NIP19KEY[:-1] + ("q" if NIP19KEY[-1] != "q" else "p")
    with pytest.raises(ValueError):
        nip19_to_hex(broken)


def test_nip19_hex_mixed_case():
    with pytest.raises(ValueError):
        nip19_to_hex("Npub" + NIP19KEY[4:])


def test_nip19_hex_no_separator():
    with pytest.raises(ValueError):
        nip19_to_hex(HEXKEY)


def test_unix_time_near_now():
    assert abs(unix_time() - time.time()) < 5


def test_host_str_relay_url():
    assert host_str("wss://nostr.example.com/") == "nostr.example.com"


def test_host_str_without_scheme():
    assert host_str("xyz") is None