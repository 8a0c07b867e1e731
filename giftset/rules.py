"""
Deterministic import/export rules.

Header matching is data: adding a new spreadsheet variant means adding a
keyword here, not touching the matcher.
"""

SOURCE_ENCODING = "utf-8"
# GBK superset, the codec browsers use for the "gbk" label
FALLBACK_ENCODING = "gb18030"
BOM = "\ufeff"

# Canonical product field -> candidate header keywords (lowercase substrings).
HEADER_KEYWORDS = {
    "sku": ["sku", "编号", "编码", "货号", "代号", "id"],
    "name": ["名称", "品名", "产品名称", "标题", "商品", "name"],
    "spec": ["规格", "参数", "尺寸", "描述", "spec"],
    "unit": ["单位", "计量", "unit"],
    "platform_price": ["平台价", "成本", "成本价", "platform"],
    "channel_price": ["渠道价", "分销价", "经销商价", "结算价", "channel"],
    "retail_price": ["零售", "零售价", "原价", "市场价", "标价", "retail"],
    "image": ["素材cdn", "素材", "图片", "图", "链接", "url", "image"],
    "manufacturer": ["厂家", "品牌", "供货商", "来源"],
    "category": ["分类", "类目", "类型", "分组"],
}

TEXT_FIELDS = ("sku", "name", "spec", "unit", "category", "image")
PRICE_FIELDS = ("platform_price", "channel_price", "retail_price")

DEFAULT_NAME = "未命名"
DEFAULT_UNIT = "件"
DEFAULT_CATEGORY = "默认"
SKU_PLACEHOLDER = "SKU-{index}"

# Manual entry defaults
NEW_PRODUCT_SKU = "NEW"
NEW_PRODUCT_NAME = "新录入产品"

ALL_CATEGORIES = "全部"

EXPORT_HEADER = [
    "方案名称", "档位预算", "选品折扣", "数量",
    "产品名称", "SKU", "规格", "单位",
    "零售价", "折后价", "我方成本", "素材CDN",
    "杂费合计", "单包税额", "含税单价", "全案总额",
]
EMPTY_TIER_NAME = "无选品"
PLACEHOLDER = "-"
TIER_LABEL = "{price}元档"
EXPORT_FILENAME = "方案导出_{name}_{day}.csv"

IMPORT_FAILED = "导入失败"
