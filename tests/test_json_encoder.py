import dataclasses
import json
from datetime import datetime, timedelta, timezone

import pytest

from zaplog.encoder import (
    EncoderConfig,
    iso8601_time_encoder,
    lowercase_level_encoder,
    seconds_duration_encoder,
    short_caller_encoder,
    string_duration_encoder,
)
from zaplog.entry import Entry, EntryCaller, Level
from zaplog.field import Field, FieldType
from zaplog.json_encoder import JSONEncoder, new_json_encoder


def full_config(**overrides):
    cfg = EncoderConfig(
        message_key="M",
        level_key="L",
        time_key="T",
        name_key="N",
        caller_key="C",
        function_key="F",
        stacktrace_key="S",
        encode_level=lowercase_level_encoder,
        encode_time=iso8601_time_encoder,
        encode_duration=seconds_duration_encoder,
        encode_caller=short_caller_encoder,
    )
    return dataclasses.replace(cfg, **overrides)


def context_only(enc):
    return enc.encode_entry(Entry(), []).decode("utf-8")


@dataclasses.dataclass
class Bar:
    key: str
    val: float


@dataclasses.dataclass
class Foo:
    aee: str
    bee: int
    cee: float
    dee: list


class Users:
    def __init__(self, n):
        self.n = n

    def marshal_log_object(self, enc):
        enc.add_int("users", self.n)

    def marshal_log_array(self, arr):
        for _ in range(self.n):
            arr.append_string("user")


class FailingArray:
    def marshal_log_array(self, arr):
        arr.append_string("x")
        raise ValueError("boom")


class NamespacedObject:
    def marshal_log_object(self, enc):
        enc.open_namespace("ns")
        enc.add_string("a", "b")


class EmptyReflected:
    def __init__(self, writer):
        self.writer = writer

    def encode(self, obj):
        self.writer.write(b"{}")


def test_encode_entry_with_some_fields():
    enc = new_json_encoder(full_config())
    ent = Entry(
        level=Level.INFO,
        time=datetime(2018, 6, 19, 16, 33, 42, tzinfo=timezone.utc),
        logger_name="bob",
        message="lob law",
    )
    fields = [
        Field(key="so", type=FieldType.STRING, string="passes"),
        Field(key="answer", type=FieldType.INT64, integer=42),
        Field(key="common_pie", type=FieldType.FLOAT64, interface=3.14),
        Field(key="a_float32", type=FieldType.FLOAT32, interface=2.71),
        Field(key="complex_value", type=FieldType.COMPLEX128, interface=3.14 - 2.71j),
        Field(key="null_value", type=FieldType.REFLECT, interface=None),
        Field(
            key="array_with_null_elements",
            type=FieldType.REFLECT,
            interface=[{}, None, None, 2],
        ),
        Field(
            key="such",
            type=FieldType.REFLECT,
            interface=Foo(
                "lol",
                123,
                0.9999,
                [Bar("pi", 3.141592653589793), Bar("tau", 6.283185307179586)],
            ),
        ),
    ]
    out = enc.encode_entry(ent, fields)
    assert json.loads(out) == {
        "L": "info",
        "T": "2018-06-19T16:33:42.000Z",
        "N": "bob",
        "M": "lob law",
        "so": "passes",
        "answer": 42,
        "a_float32": 2.71,
        "common_pie": 3.14,
        "complex_value": "3.14-2.71i",
        "null_value": None,
        "array_with_null_elements": [{}, None, None, 2],
        "such": {
            "aee": "lol",
            "bee": 123,
            "cee": 0.9999,
            "dee": [
                {"key": "pi", "val": 3.141592653589793},
                {"key": "tau", "val": 6.283185307179586},
            ],
        },
    }


def test_zero_time_omitted():
    enc = new_json_encoder(full_config())
    out = enc.encode_entry(Entry(level=Level.INFO, logger_name="name", message="message"), [])
    assert json.loads(out) == {"L": "info", "N": "name", "M": "message"}


def test_no_encode_level_supplied():
    enc = new_json_encoder(full_config(encode_level=None))
    ent = Entry(
        level=Level.INFO,
        time=datetime(2018, 6, 19, 16, 33, 42, tzinfo=timezone.utc),
        logger_name="bob",
        message="lob law",
    )
    out = enc.encode_entry(ent, [Field(key="answer", type=FieldType.INT64, integer=42)])
    assert json.loads(out) == {
        "T": "2018-06-19T16:33:42.000Z",
        "N": "bob",
        "M": "lob law",
        "answer": 42,
    }


@pytest.mark.parametrize(
    "field, expected",
    [
        (Field(key="foo", type=FieldType.TIME, integer=1591287718 * 10**9), {"foo": 1591287718000000000}),
        (Field(key="bar", type=FieldType.DURATION, integer=1000), {"bar": 1000}),
    ],
)
def test_empty_config(field, expected):
    enc = new_json_encoder(EncoderConfig())
    ent = Entry(
        level=Level.DEBUG,
        time=datetime.now(timezone.utc),
        logger_name="mylogger",
        message="things happened",
    )
    assert json.loads(enc.encode_entry(ent, [field])) == expected


@pytest.mark.parametrize(
    "field, expected",
    [
        (
            Field(key="data", type=FieldType.REFLECT, interface={"foo": "hello", "bar": 1111}),
            {"data": {}},
        ),
        (Field(key="data", type=FieldType.REFLECT), {"data": None}),
    ],
)
def test_custom_reflected_encoder(field, expected):
    enc = new_json_encoder(EncoderConfig(new_reflected_encoder=EmptyReflected))
    ent = Entry(level=Level.DEBUG, time=datetime.now(timezone.utc), logger_name="logger", message="m")
    assert json.loads(enc.encode_entry(ent, [field])) == expected


def test_full_entry_ordering_and_line_ending():
    enc = new_json_encoder(full_config(encode_time=None, time_key=""))
    ent = Entry(
        level=Level.INFO,
        logger_name="main",
        message="hello",
        caller=EntryCaller(defined=True, file="/a/b/foo.go", line=42, function="foo.Foo"),
        stack="stack",
    )
    out = enc.encode_entry(ent, [Field(key="k", type=FieldType.INT64, integer=1)])
    assert out == (
        b'{"L":"info","N":"main","C":"b/foo.go:42","F":"foo.Foo",'
        b'"M":"hello","k":1,"S":"stack"}\n'
    )


def test_skip_line_ending():
    enc = new_json_encoder(EncoderConfig(message_key="M", skip_line_ending=True, line_ending="\r\n"))
    assert enc.encode_entry(Entry(message="x"), []) == b'{"M":"x"}'


def test_noop_level_encoder_falls_back_to_string():
    enc = new_json_encoder(EncoderConfig(level_key="L", encode_level=lambda lvl, e: None))
    assert enc.encode_entry(Entry(level=Level.WARN), []) == b'{"L":"warn"}\n'


def test_string_escaping():
    enc = new_json_encoder(EncoderConfig())
    enc.add_string("k", 'a"b\\c\n\r\t\x01')
    assert context_only(enc) == r'{"k":"a\"b\\c\n\r\t\u0001"}' + "\n"


def test_unicode_kept_as_is():
    enc = new_json_encoder(EncoderConfig())
    enc.add_string("k", "💩é")
    assert json.loads(context_only(enc)) == {"k": "💩é"}
    assert "💩é" in context_only(enc)


def test_invalid_utf8_bytes_replaced():
    enc = new_json_encoder(EncoderConfig())
    enc.add_byte_string("k", b"a\xffb\xe2\x82")
    assert context_only(enc) == r'{"k":"a\ufffdb\ufffd\ufffd"}' + "\n"


def test_binary_is_base64():
    enc = new_json_encoder(EncoderConfig())
    enc.add_binary("k", b"\x01\x02\x03")
    assert json.loads(context_only(enc)) == {"k": "AQID"}


@pytest.mark.parametrize(
    "value, expected",
    [
        (1.0, '{"f":1}'),
        (1e21, '{"f":1000000000000000000000}'),
        (-0.0, '{"f":-0}'),
        (float("nan"), '{"f":"NaN"}'),
        (float("inf"), '{"f":"+Inf"}'),
        (float("-inf"), '{"f":"-Inf"}'),
        (1.5e-7, '{"f":0.00000015}'),
    ],
)
def test_float64_formatting(value, expected):
    enc = new_json_encoder(EncoderConfig())
    enc.add_float64("f", value)
    assert context_only(enc) == expected + "\n"


def test_float32_and_complex64_shortest_digits():
    enc = new_json_encoder(EncoderConfig())
    enc.add_float32("float32", 3.14)
    enc.add_complex64("complex64", 2.71 + 3.14j)
    assert context_only(enc) == '{"float32":3.14,"complex64":"2.71+3.14i"}\n'


def test_bool_int_uint():
    enc = new_json_encoder(EncoderConfig())
    enc.add_bool("b", True)
    enc.add_int("i", -5)
    enc.add_uint("u", 18446744073709551615)
    assert context_only(enc) == '{"b":true,"i":-5,"u":18446744073709551615}\n'


def test_time_falls_back_to_nanos_without_encoder():
    enc = new_json_encoder(EncoderConfig())
    enc.add_time("t", datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc))
    assert context_only(enc) == '{"t":1000000000}\n'


def test_duration_with_string_encoder_and_timedelta():
    enc = new_json_encoder(EncoderConfig(encode_duration=string_duration_encoder))
    enc.add_duration("d", timedelta(milliseconds=1))
    enc.add_duration("n", 60 * 10**9)
    assert context_only(enc) == '{"d":"1ms","n":"1m0s"}\n'


def test_namespaces_are_closed():
    enc = new_json_encoder(EncoderConfig())
    enc.open_namespace("outer")
    enc.open_namespace("inner")
    enc.add_string("foo", "bar")
    enc.open_namespace("innermost")
    assert context_only(enc) == '{"outer":{"inner":{"foo":"bar","innermost":{}}}}\n'


def test_object_closes_only_its_own_namespaces():
    enc = new_json_encoder(EncoderConfig())
    enc.open_namespace("outer")
    enc.add_object("obj", NamespacedObject())
    enc.add_string("after", "x")
    assert json.loads(context_only(enc)) == {
        "outer": {"obj": {"ns": {"a": "b"}}, "after": "x"}
    }


def test_array_and_object_marshalers():
    enc = new_json_encoder(EncoderConfig())
    enc.add_array("arr", Users(2))
    enc.add_object("obj", Users(3))
    assert context_only(enc) == '{"arr":["user","user"],"obj":{"users":3}}\n'


def test_array_failure_closes_bracket_and_records_error():
    enc = new_json_encoder(EncoderConfig())
    out = enc.encode_entry(
        Entry(), [Field(key="k", type=FieldType.ARRAY_MARSHALER, interface=FailingArray())]
    )
    assert out == b'{"k":["x"],"kError":"boom"}\n'


def test_reflected_failure_writes_no_key():
    enc = new_json_encoder(EncoderConfig())
    out = enc.encode_entry(Entry(), [Field(key="k", type=FieldType.REFLECT, interface=object())])
    assert json.loads(out) == {"kError": "json: unsupported type: object"}


def test_reflected_buffer_is_reused_correctly():
    enc = new_json_encoder(EncoderConfig())
    enc.add_reflected("a", {"x": [1, 2]})
    enc.add_reflected("b", "é")
    enc.append_reflected(None)
    assert context_only(enc) == '{"a":{"x":[1,2]},"b":"é",null}\n'


def test_clone_is_independent():
    enc = new_json_encoder(EncoderConfig())
    enc.add_string("a", "1")
    copy = enc.clone()
    copy.add_string("b", "2")
    assert context_only(enc) == '{"a":"1"}\n'
    assert context_only(copy) == '{"a":"1","b":"2"}\n'


def test_spaced_output():
    enc = JSONEncoder(EncoderConfig(), spaced=True)
    enc.add_string("a", "1")
    enc.add_array("b", Users(2))
    assert context_only(enc) == '{"a": "1", "b": ["user", "user"]}\n'


def test_context_is_merged_into_entry():
    enc = new_json_encoder(EncoderConfig(message_key="msg"))
    enc.add_int("k", 1)
    out = enc.encode_entry(Entry(message="hi"), [Field(key="k", type=FieldType.INT64, integer=3)])
    assert out == b'{"msg":"hi","k":1,"k":3}\n'