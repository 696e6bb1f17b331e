import openpyxl
import pytest

PREFECTURE_NAMES = [
    "北海道", "青森県", "岩手県", "宮城県", "秋田県", "山形県", "福島県",
    "茨城県", "栃木県", "群馬県", "埼玉県", "千葉県", "東京都", "神奈川県",
    "新潟県", "富山県", "石川県", "福井県", "山梨県", "長野県", "岐阜県",
    "静岡県", "愛知県", "三重県", "滋賀県", "京都府", "大阪府", "兵庫県",
    "奈良県", "和歌山県", "鳥取県", "島根県", "岡山県", "広島県", "山口県",
    "徳島県", "香川県", "愛媛県", "高知県", "福岡県", "佐賀県", "長崎県",
    "熊本県", "大分県", "宮崎県", "鹿児島県", "沖縄県",
]

HEADER_ROWS = [
    ["入院患者受入病床数等に関する調査結果"],
    ["（2022年11月30日0時時点）"],
    [],
    [None, None, "入院者数", None, None, "フェーズ", "確保病床数"],
    [None, None, None, "うち確保病床", "うち臨時"],
    [],
    [],
    ["都道府県", "人口", "総数", "確保病床使用者", "臨時", "現在／最終", "即応", "確保", "臨時確保"],
]

FIXTURE_ROWS = {
    # 山形県: 緊急フェーズ（ローマ数字）
    6: [457, 151, 0, "Ⅰ／Ⅱ", 284, 284, 0],
    13: [3066, 2924, 225, "２／２", 5005, 7496, 579],
}


def _data_row(code):
    name = PREFECTURE_NAMES[code - 1]
    label = f"{code:02d} {name}"
    if code in FIXTURE_ROWS:
        total, dedicated, extra, phase, available, guaranteed, extra_guaranteed = FIXTURE_ROWS[code]
    else:
        total, dedicated, extra = code * 10, code * 9, code % 3
        phase = "１／３" if code % 2 else "2／3"
        available, guaranteed, extra_guaranteed = code * 20, code * 25, code % 5
    return [label, code * 1000, total, dedicated, extra, phase, available, guaranteed, extra_guaranteed]


def build_report_rows():
    rows = [list(row) for row in HEADER_ROWS]
    rows.extend(_data_row(code) for code in range(1, 48))
    rows.append(["全国", None, "合計"])
    return rows


@pytest.fixture
def report_rows():
    return build_report_rows()


@pytest.fixture
def report_xlsx(tmp_path):
    workbook = openpyxl.Workbook()
    worksheet = workbook.active
    worksheet.title = "病床使用率"
    for row in build_report_rows():
        worksheet.append(row)
    path = tmp_path / "001019538.xlsx"
    workbook.save(path)
    return path
