# Copyright (c) 2025 Henru Wang
# All rights reserved.

"""Tests for the runtime object schema."""

import pytest

from apy_intel.runtime_schema import (
    MemberKind,
    RuntimeSchema,
    extract_completion_detail,
    get_runtime_schema,
    get_runtime_signature,
    strip_method_signature,
)


@pytest.fixture(scope="module")
def schema() -> RuntimeSchema:
    return RuntimeSchema.load()


class TestCompletionDetail:
    def test_method(self):
        detail = extract_completion_detail(
            "def add_data(self, key: str, value: Any) -> None: ...", MemberKind.METHOD
        )

        assert detail == "add_data(key: str, value: Any) -> None"

    def test_method_without_parameters(self):
        assert extract_completion_detail("def now(self) -> datetime: ...", MemberKind.METHOD) == (
            "now() -> datetime"
        )

    def test_method_with_parenthesized_default(self):
        detail = extract_completion_detail(
            "def select_for_update(self, nowait: bool = False, of: tuple = ()) -> Any: ...",
            MemberKind.METHOD,
        )

        assert detail == "select_for_update(nowait: bool = False, of: tuple = ()) -> Any"

    def test_property(self):
        assert extract_completion_detail("headers: Dict[str, Any]", MemberKind.PROPERTY) == (
            "Dict[str, Any]"
        )

    def test_class_kind_has_no_detail(self):
        assert extract_completion_detail("class X", MemberKind.CLASS) is None


class TestStripMethodSignature:
    def test_removes_def_self_and_stub_body(self):
        assert strip_method_signature("def info(self, message: str) -> None: ...") == (
            "info(message: str) -> None"
        )

    def test_self_only(self):
        assert strip_method_signature("def select(self) -> Any: ...") == "select() -> Any"


class TestBundledSchema:
    def test_roots(self, schema):
        for root in ("reve", "logger", "exceptions", "Response", "Http404", "AccessToken"):
            assert schema.is_runtime_root(root)
        assert not schema.is_runtime_root("utils")

    def test_logger_completions(self, schema):
        items = schema.completions_for("logger")

        assert items is not None
        labels = [item.label for item in items]
        assert labels == ["debug", "info", "warning", "error", "critical", "exception"]
        assert all(item.kind == MemberKind.METHOD for item in items)

    def test_nested_keys(self, schema):
        request = schema.completions_for("reve.request")
        assert request is not None
        assert "headers" in [item.label for item in request]

        table = schema.completions_for("reve.database[]")
        assert table is not None
        assert {"insert", "select"} <= {item.label for item in table}

    def test_exceptions_lists_nested_classes(self, schema):
        items = schema.completions_for("exceptions")

        assert items is not None
        assert {item.label for item in items} >= {"HttpException", "Http400", "Http500"}
        assert all(item.kind == MemberKind.CLASS for item in items)

    @pytest.mark.parametrize(
        "key,count",
        [
            ("logger", 6),
            ("exceptions", 8),
            ("reve", 22),
            ("reve.request", 11),
            ("reve.auth", 24),
            ("reve.database", 3),
            ("reve.database[]", 5),
            ("reve.database.expressions", 16),
            ("reve.database.exceptions", 2),
            ("reve.utils", 20),
            ("reve.libs", 13),
            ("reve.ai", 11),
            ("Response", 6),
            ("Http400", 2),
            ("Http500", 2),
            ("AccessToken", 4),
            ("RefreshToken", 4),
        ],
    )
    def test_member_counts(self, schema, key, count):
        items = schema.completions_for(key)

        assert items is not None
        assert len(items) == count
        assert len({item.label for item in items}) == count

    def test_completion_keys(self, schema):
        assert len(schema.completions) == 22

    def test_auth_and_utils_helpers(self, schema):
        auth = {item.label for item in schema.completions_for("reve.auth")}
        utils = {item.label for item in schema.completions_for("reve.utils")}
        table = {item.label for item in schema.completions_for("reve.database[]")}

        assert {"check_password", "social_authenticate", "fetch_google_access_token"} <= auth
        assert {"encrypt_aes256_cbc", "to_datetime_tz", "substring"} <= utils
        assert {"select_for_update", "update_or_insert"} <= table

    def test_unknown_key(self, schema):
        assert schema.completions_for("reve.nothing") is None
        assert schema.completions_for("utils") is None


class TestGetSignature:
    def test_response_constructor(self, schema):
        assert schema.get_signature("Response") == (
            "Response(status_code: int = 200, data: Union[dict, str, None] = None, "
            "content_type: str = 'application/json')"
        )

    def test_token_constructor(self, schema):
        assert schema.get_signature("AccessToken") == "AccessToken(user_id: Any, **kwargs: Any)"

    def test_http_exception_constructor(self, schema):
        assert schema.get_signature("Http404") == "Http404(data: Optional[dict] = None)"
        assert schema.get_signature("Http404.status_code") == "int"

    def test_auth_helpers(self, schema):
        assert get_runtime_signature("reve.auth.check_password") == (
            "check_password(password: str, hashed_password: str) -> bool"
        )
        assert schema.get_signature("reve.auth.social_authenticate") == (
            "social_authenticate(provider: str, code: str, redirect_url: Optional[str] = None)"
            " -> tuple"
        )

    def test_same_member_name_resolved_per_namespace(self, schema):
        assert schema.get_signature("reve.utils.check_password") == (
            "check_password(password: str, encoded_password: str) -> bool"
        )
        assert schema.get_signature("reve.send_email") == (
            "send_email(subject: str, message: str, recipient: str) -> None"
        )

    def test_exception_class(self, schema):
        assert schema.get_signature("exceptions.Http404") == "Http404()"

    def test_method_detail(self, schema):
        assert schema.get_signature("logger.info") == (
            "info(message: str, *args: Any, **kwargs: Any) -> None"
        )

    def test_nested_method(self, schema):
        assert schema.get_signature("reve.auth.encode_password") == (
            "encode_password(password: str, validators: Optional[list] = None) -> str"
        )

    def test_property_type(self, schema):
        assert schema.get_signature("reve.request.headers") == "Dict[str, Any]"

    def test_unknown(self, schema):
        assert schema.get_signature("reve") is None
        assert schema.get_signature("logger.nothing") is None
        assert schema.get_signature("") is None

    def test_module_level_helpers(self):
        assert get_runtime_schema() is get_runtime_schema()
        assert get_runtime_signature("logger.debug") is not None


class TestFromDict:
    def test_defaults_completion_key_to_class_name(self):
        schema = RuntimeSchema.from_dict(
            {
                "roots": ["Thing"],
                "classes": [
                    {
                        "name": "Thing",
                        "members": [
                            {"name": "go", "kind": "method", "signature": "def go(self, n: int): ..."}
                        ],
                    }
                ],
            }
        )

        items = schema.completions_for("Thing")
        assert items is not None
        assert items[0].detail == "go(n: int)"
        assert schema.get_signature("Thing.go") == "go(n: int)"

    def test_rejects_non_mapping(self):
        with pytest.raises(ValueError):
            RuntimeSchema.from_dict(["not", "a", "mapping"])  # type: ignore[arg-type]
