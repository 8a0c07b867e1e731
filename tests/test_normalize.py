import pytest

from giftset.errors import FormatError
from giftset.normalize import (
    NOT_FOUND,
    clean_number,
    decode_bytes,
    import_csv_bytes,
    map_fields,
    normalize_records,
    parse_line,
    parse_rows,
)

CATALOG_CSV = (
    "SKU,产品名称,规格,单位,成本价,渠道价,零售价,素材CDN,分类\n"
    "ZS-001,禅意茶具,一壶四杯,套,200,299,599,https://cdn.example.com/a.jpg,茶具\n"
    "ZS-002,\"香薰,礼盒\",100ml,盒,¥80.5,120,N/A,,香氛\n"
)


def test_decode_utf8_matches_standard_decode():
    raw = "名称,零售价\n茶具,599\n".encode("utf-8")
    assert decode_bytes(raw) == raw.decode("utf-8")


def test_decode_falls_back_to_gbk():
    raw = "名称,零售价\n茶具,599\n".encode("gbk")
    assert decode_bytes(raw) == "名称,零售价\n茶具,599\n"


def test_decode_fallback_reads_gb18030_extensions():
    raw = "名称,零售价\n".encode("gb18030") + b"\x80,1\n" + "𠀀,2\n".encode("gb18030")
    assert decode_bytes(raw) == "名称,零售价\n€,1\n𠀀,2\n"


def test_decode_never_raises_on_garbage():
    assert isinstance(decode_bytes(b"\xff\xfe\x80\x81\xfe"), str)


def test_parse_line_plain_fields_round_trip():
    fields = ["A1", "Widget", "12.5", "", "件"]
    assert parse_line(",".join(fields)) == fields


def test_parse_line_quoted_comma_is_content():
    assert parse_line('a,"b,c", d ') == ["a", "b,c", "d"]


def test_parse_line_doubled_quote_toggles_twice():
    assert parse_line('a,"x""y",b') == ["a", "xy", "b"]


def test_parse_rows_drops_blank_lines_and_bom():
    text = "\ufeff名称,零售价\r\n\r\n  \n茶具,599\r\n"
    assert parse_rows(text) == [["名称", "零售价"], ["茶具", "599"]]


@pytest.mark.parametrize("text", ["", "\n \n", "名称,零售价\n\n"])
def test_parse_rows_requires_header_and_data(text):
    with pytest.raises(FormatError):
        parse_rows(text)


def test_map_fields_example_header():
    mapping = map_fields(["货号", "品名", "零售价"])
    assert mapping["sku"] == 0
    assert mapping["name"] == 1
    assert mapping["retail_price"] == 2
    others = set(mapping) - {"sku", "name", "retail_price"}
    assert all(mapping[f] == NOT_FOUND for f in others)


def test_map_fields_leftmost_column_wins():
    mapping = map_fields(["图片链接", "产品名称", "商品主图"])
    assert mapping["image"] == 0
    assert mapping["name"] == 1


def test_map_fields_is_case_insensitive():
    mapping = map_fields(["Product SKU", "Retail Price", "Image URL"])
    assert mapping["sku"] == 0
    assert mapping["retail_price"] == 1
    assert mapping["image"] == 2


def test_map_fields_uses_supplied_table():
    mapping = map_fields(["brand", "title"], {"manufacturer": ["brand"], "name": ["title"]})
    assert mapping == {"manufacturer": 0, "name": 1}


@pytest.mark.parametrize("raw, expected", [
    ("¥12.50", 12.5),
    ("1,200元", 1200.0),
    ("N/A", 0.0),
    ("", 0.0),
    (".", 0.0),
    ("12.5.3", 12.5),
    ("-30", 30.0),
])
def test_clean_number(raw, expected):
    assert clean_number(raw) == expected


def test_normalize_records_reads_price_and_degrades_bad_cells():
    mapping = map_fields(["货号", "品名", "零售价"])
    rows = [["A1", "Widget", "¥12.50"], ["A2", "Gadget", "N/A"]]

    products = normalize_records(rows, mapping, batch_stamp=1700000000000)

    assert products[0].retail_price == 12.5
    assert products[1].retail_price == 0
    assert products[0].sku == "A1"
    assert products[0].name == "Widget"


def test_normalize_records_defaults_for_unmapped_fields():
    mapping = map_fields(["零售价"])
    products = normalize_records([["10"], ["20"]], mapping, batch_stamp=42)

    first = products[0]
    assert first.name == "未命名"
    assert first.sku == "SKU-0"
    assert products[1].sku == "SKU-1"
    assert first.unit == "件"
    assert first.category == "默认"
    assert first.spec == ""
    assert first.image == ""
    assert first.manufacturer == ""
    assert first.platform_price == 0
    assert first.channel_price == 0


def test_normalize_records_ids_unique_within_batch():
    mapping = map_fields(["品名"])
    products = normalize_records([["a"], ["b"], ["c"]], mapping, batch_stamp=99)
    assert [p.id for p in products] == ["99-0", "99-1", "99-2"]


def test_normalize_records_short_row_gives_empty_cells():
    mapping = map_fields(["品名", "规格", "零售价"])
    (product,) = normalize_records([["茶具"]], mapping, batch_stamp=1)
    assert product.name == "茶具"
    assert product.spec == ""
    assert product.retail_price == 0


def test_manufacturer_is_never_imported():
    mapping = map_fields(["品名", "品牌"])
    assert mapping["manufacturer"] == 1
    (product,) = normalize_records([["茶具", "景德镇"]], mapping, batch_stamp=1)
    assert product.manufacturer == ""


def test_import_csv_bytes_full_pipeline():
    result = import_csv_bytes(CATALOG_CSV.encode("utf-8"), batch_stamp=5)

    first, second = result.products
    assert first.sku == "ZS-001"
    assert first.platform_price == 200
    assert first.channel_price == 299
    assert first.retail_price == 599
    assert first.image == "https://cdn.example.com/a.jpg"
    assert first.category == "茶具"
    assert second.name == "香薰,礼盒"
    assert second.platform_price == 80.5
    assert second.retail_price == 0

    report = result.report
    assert report.rows == 2
    assert report.encoding.decode_used == "utf-8"
    assert report.encoding.decode_fallback is False
    assert report.mapping["manufacturer"] == NOT_FOUND

    issues = [(w.issue, w.column, w.value) for w in report.warnings]
    assert ("numeric_parse_failure", "retail_price", "N/A") in issues
    assert not any(issue == "field_not_found" for issue, _, _ in issues)


def test_import_csv_bytes_gbk_reports_fallback():
    raw = "货号,品名,零售价\nA1,茶具,599\n".encode("gbk")
    result = import_csv_bytes(raw)

    assert result.report.encoding.decode_used == "gb18030"
    assert result.report.encoding.decode_fallback is True
    assert result.products[0].name == "茶具"

    missing = {w.column for w in result.report.warnings if w.issue == "field_not_found"}
    assert {"spec", "unit", "category", "image", "platform_price", "channel_price"} <= missing


def test_import_csv_bytes_header_only_fails():
    with pytest.raises(FormatError):
        import_csv_bytes("货号,品名,零售价\n".encode("utf-8"))
