import re

import pytest

from app.core.naming import (
    MAX_NAME_LENGTH,
    config_map_name,
    derive_name,
    ingress_name,
    is_dns_label,
    label_value,
    service_name,
)

DNS_LABEL = re.compile(r"^[a-z0-9]([a-z0-9-]*[a-z0-9])?$")


@pytest.mark.parametrize("raw, expected", [
    ("My_App v2", "my-app-v2"),
    ("  --Hello World--  ", "hello-world"),
    ("café@shop!", "cafshop"),
    ("API_Gateway", "api-gateway"),
    ("already-valid", "already-valid"),
])
def test_derive_name(raw, expected):
    assert derive_name(raw) == expected


def test_derive_name_can_be_empty():
    assert derive_name("!!!") == ""
    assert derive_name("") == ""
    assert derive_name(None) == ""


def test_truncation_never_leaves_trailing_hyphen():
    raw = "a" * 62 + "_b"
    name = derive_name(raw)
    assert len(name) <= MAX_NAME_LENGTH
    assert name == "a" * 62
    assert DNS_LABEL.match(name)


def test_derive_name_is_idempotent():
    for raw in ["My_App v2", "x" * 100, "--a_b c--", "Test.Name"]:
        once = derive_name(raw)
        assert derive_name(once) == once
        assert once == "" or DNS_LABEL.match(once)


def test_child_object_names_share_prefix():
    name = derive_name("Shop Front")
    assert config_map_name(name) == "shop-front-config"
    assert service_name(name) == "shop-front-service"
    assert ingress_name(name) == "shop-front-ingress"


def test_label_value_replaces_slash():
    assert label_value("octo/hello-world") == "octo-hello-world"
    assert len(label_value("o" * 80)) <= MAX_NAME_LENGTH


def test_long_valid_name_is_cut_to_its_first_63_characters():
    raw = "ab" * 50
    assert derive_name(raw) == raw[:MAX_NAME_LENGTH]


@pytest.mark.parametrize("value, valid", [
    ("espaze-node-deployer-apps", True),
    ("team1", True),
    ("Bad_NS!", False),
    ("-leading", False),
    ("trailing-", False),
    ("n" * 64, False),
    ("", False),
])
def test_is_dns_label(value, valid):
    assert is_dns_label(value) is valid
