from __future__ import annotations

import json
from pathlib import Path

import pytest

from pdfextractx.exceptions import ConfigError, XfaParseError
from pdfextractx.types import XfaMode
from pdfextractx.xfa import (
    DEFAULT_PRUNE_RULES,
    PruneRules,
    clean_form_data,
    decode_raw,
    join_blob,
    transform_xfa,
    xfa_to_json,
)

XDP_NS = 'xmlns:xdp="http://ns.adobe.com/xdp/"'
XFA_NS = 'xmlns:xfa="http://www.xfa.org/schema/xfa-data/1.0/"'


def _form(body: str) -> bytes:
    return (
        f"<xdp:xdp {XDP_NS}><xfa:datasets {XFA_NS}><xfa:data>"
        f"{body}"
        "</xfa:data></xfa:datasets></xdp:xdp>"
    ).encode("utf-8")


def _country_list(count: int = 50) -> str:
    items = "".join(f"<item>Country {index}</item>" for index in range(1, count + 1))
    return f"<CountryList>{items}</CountryList>"


def test_clean_mode_flattens_data_section(sample_xdp: bytes) -> None:
    record = clean_form_data([sample_xdp])

    assert record == {
        "form1.Name": "Jane Doe",
        "form1.Address.Street": "1 Main St",
        "form1.Address.City": "Springfield",
        "form1.Phone[0]": "555-0100",
        "form1.Phone[1]": "555-0199",
        "form1.Amount": "12.50",
        "form1.Amount@currency": "USD",
    }
    assert list(record) == [
        "form1.Name",
        "form1.Address.Street",
        "form1.Address.City",
        "form1.Phone[0]",
        "form1.Phone[1]",
        "form1.Amount",
        "form1.Amount@currency",
    ]


def test_clean_mode_never_introduces_values(sample_xdp: bytes) -> None:
    source = sample_xdp.decode("utf-8")
    for value in clean_form_data([sample_xdp]).values():
        assert value in source


def test_clean_mode_drops_template_and_config_packets(sample_xdp: bytes) -> None:
    record = clean_form_data([sample_xdp])
    assert not any("version" in key or "subform" in key for key in record)
    assert "1.7" not in record.values()
    assert "42" not in record.values()


def test_option_list_is_dropped_when_a_selection_exists() -> None:
    blob = _form(f"<Shipping><Country>Country 7</Country>{_country_list()}</Shipping>")

    record = clean_form_data([blob])

    assert record == {"Shipping.Country": "Country 7"}


def test_option_list_is_kept_without_a_selection() -> None:
    blob = _form(f"<Shipping>{_country_list()}</Shipping>")

    record = clean_form_data([blob])

    assert len(record) == 50
    assert record["Shipping.CountryList.item[0]"] == "Country 1"
    assert record["Shipping.CountryList.item[49]"] == "Country 50"


def test_option_list_is_kept_beside_unrelated_values() -> None:
    blob = _form(f"<Shipping><Name>Bob</Name>{_country_list()}</Shipping>")

    record = clean_form_data([blob])

    assert len(record) == 51
    assert record["Shipping.Name"] == "Bob"
    assert record["Shipping.CountryList.item[49]"] == "Country 50"


def test_option_list_pairs_with_its_field_name() -> None:
    options = "".join(f"<option>Country {index}</option>" for index in range(1, 21))
    blob = _form(f"<Shipping><Name>Bob</Name><Country>Country 3</Country><CountryOptions>{options}</CountryOptions></Shipping>")

    record = clean_form_data([blob])

    assert record == {"Shipping.Name": "Bob", "Shipping.Country": "Country 3"}


def test_option_list_is_dropped_when_parent_holds_the_value() -> None:
    blob = _form(f"<Shipping>Country 4{_country_list()}</Shipping>")

    record = clean_form_data([blob])

    assert record == {"Shipping": "Country 4"}


@pytest.mark.parametrize(
    ("list_name", "expected"),
    [("CountryList", "Country"), ("CountryOptions", "Country"), ("state_list", "state"), ("List", None), ("Country", None)],
)
def test_option_list_field_name(list_name: str, expected) -> None:
    assert DEFAULT_PRUNE_RULES.field_name(list_name) == expected


def test_short_lists_are_not_option_lists() -> None:
    blob = _form(f"<Shipping><Country>Country 2</Country>{_country_list(3)}</Shipping>")

    record = clean_form_data([blob])

    assert record["Shipping.CountryList.item[2]"] == "Country 3"


def test_collisions_get_numbered_suffixes() -> None:
    blob = _form("<root><a.b>1</a.b><a><b>2</b></a></root>")

    record = clean_form_data([blob])

    assert record == {"root.a.b": "1", "root.a.b#2": "2"}


def test_custom_prune_rules() -> None:
    rules = PruneRules.from_mapping({"system_names": ["Address"], "path_delimiter": "/"})
    blob = _form("<form1><Name>Jane</Name><Address><City>X</City></Address></form1>")

    record = clean_form_data([blob], rules)

    assert record == {"form1/Name": "Jane"}


def test_data_section_falls_back_to_root() -> None:
    record = clean_form_data([b"<form1><Name>Jane</Name></form1>"])
    assert record == {"Name": "Jane"}


def test_full_mode_keeps_every_leaf(sample_xdp: bytes) -> None:
    data = xfa_to_json([sample_xdp])

    root = data["xdp"]
    assert set(root) == {"template", "datasets", "config"}
    form = root["datasets"]["data"]["form1"]
    assert form["Name"] == "Jane Doe"
    assert form["Phone"] == ["555-0100", "555-0199"]
    assert form["Amount"] == {"_attributes": {"currency": "USD"}, "_value": "12.50"}
    assert form["Signature"] == {"_attributes": {"dataNode": "dataGroup"}}
    assert form["FSCalcCache"] == "42"
    assert form["Empty"] == ""
    assert root["config"]["present"]["pdf"]["version"] == "1.7"


def test_full_mode_is_a_superset_of_clean_mode(sample_xdp: bytes) -> None:
    payload = transform_xfa([sample_xdp], XfaMode.FULL).payload
    for value in clean_form_data([sample_xdp]).values():
        assert value in payload


def test_transform_is_deterministic(sample_xdp: bytes) -> None:
    for mode in (XfaMode.RAW, XfaMode.FULL, XfaMode.CLEAN):
        first = transform_xfa([sample_xdp], mode)
        second = transform_xfa([sample_xdp], mode)
        assert first == second


def test_clean_result_carries_record_and_json(sample_xdp: bytes) -> None:
    result = transform_xfa([sample_xdp], XfaMode.CLEAN)

    assert result.present
    assert result.mode is XfaMode.CLEAN
    assert json.loads(result.payload) == result.record


def test_raw_mode_is_verbatim() -> None:
    chunks = [b"<xdp:xdp>", b"<broken"]

    result = transform_xfa(chunks, XfaMode.RAW)

    assert result.payload == "<xdp:xdp><broken"


def test_raw_mode_honours_declared_encoding() -> None:
    chunks = ['<?xml version="1.0" encoding="ISO-8859-1"?><Name>Ren\xe9</Name>'.encode("latin-1"), b"<City>K\xf6ln</City>"]

    assert decode_raw(chunks) == '<?xml version="1.0" encoding="ISO-8859-1"?><Name>Ren\xe9</Name><City>K\xf6ln</City>'


def test_raw_mode_decodes_utf16_with_bom() -> None:
    chunk = '<?xml version="1.0" encoding="UTF-16"?><Name>Zo\xeb</Name>'.encode("utf-16")

    result = transform_xfa([chunk], XfaMode.RAW)

    assert result.payload == '<?xml version="1.0" encoding="UTF-16"?><Name>Zo\xeb</Name>'


def test_raw_mode_falls_back_to_latin1() -> None:
    chunk = b"<Name>Fran\xe7ois</Name>"

    payload = decode_raw([chunk])

    assert "�" not in payload
    assert payload.encode("latin-1") == chunk


@pytest.mark.parametrize("blob", [None, [], [b""], [b"  \n"]])
def test_missing_form_data_is_absent(blob) -> None:
    for mode in XfaMode:
        assert transform_xfa(blob, mode).is_absent


def test_off_mode_is_absent(sample_xdp: bytes) -> None:
    assert transform_xfa([sample_xdp], XfaMode.OFF).is_absent


def test_present_but_empty_form() -> None:
    result = transform_xfa([_form("<form1><Empty/></form1>")], XfaMode.CLEAN)

    assert result.present
    assert result.record == {}
    assert result.payload == "{}"


@pytest.mark.parametrize("mode", [XfaMode.FULL, XfaMode.CLEAN])
def test_malformed_xml_raises(mode: XfaMode) -> None:
    with pytest.raises(XfaParseError):
        transform_xfa([b"<xdp><unclosed></xdp>"], mode)


def test_streams_are_joined_without_extra_declarations() -> None:
    chunks = [
        b'\xef\xbb\xbf<?xml version="1.0"?>' + f"<xdp:xdp {XDP_NS}>".encode(),
        f'<?xml version="1.0"?><xfa:datasets {XFA_NS}><xfa:data><f><v>1</v></f></xfa:data></xfa:datasets>'.encode(),
        b"</xdp:xdp>",
    ]

    joined = join_blob(chunks)

    assert joined.count(b"<?xml") == 1
    assert joined.startswith(b'<?xml version="1.0"?>')
    assert clean_form_data(chunks) == {"f.v": "1"}


def test_prune_rules_from_mapping_validates() -> None:
    rules = PruneRules.from_mapping({"lookup_min_items": 3})
    assert rules.lookup_min_items == 3
    assert rules.system_names == DEFAULT_PRUNE_RULES.system_names

    with pytest.raises(ConfigError):
        PruneRules.from_mapping({"bogus": 1})
    with pytest.raises(ConfigError):
        PruneRules.from_mapping({"system_names": "template"})
    with pytest.raises(ConfigError):
        PruneRules.from_mapping({"lookup_min_items": 0})


def test_prune_rules_from_json_file(tmp_path: Path) -> None:
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({"lookup_patterns": ["codes"]}), encoding="utf-8")

    rules = PruneRules.from_json_file(path)

    assert rules.lookup_patterns == ("codes",)
    assert rules.is_lookup_name("StateCodes")
    assert not rules.is_lookup_name("CountryList")

    (tmp_path / "bad.json").write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(ConfigError):
        PruneRules.from_json_file(tmp_path / "bad.json")
    with pytest.raises(ConfigError):
        PruneRules.from_json_file(tmp_path / "missing.json")


def test_system_node_detection() -> None:
    assert DEFAULT_PRUNE_RULES.is_system_node("template")
    assert DEFAULT_PRUNE_RULES.is_system_node("FSCalc")
    assert DEFAULT_PRUNE_RULES.is_system_node("_hidden")
    assert not DEFAULT_PRUNE_RULES.is_system_node("Name")
