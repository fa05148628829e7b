"""
labels.py
Japanese display labels for damage types, sizes, statuses and months.
"""

TYPE_LABELS = {
    'Longitudinal Crack': '縦状亀裂',
    'Transverse Crack': '横状亀裂',
    'Alligator Crack': '網状亀裂',
    'Potholes': 'ポットホール',
}

SIZE_LABELS = {
    'large': '大',
    'medium': '中',
    'small': '小',
}
UNKNOWN_SIZE_LABEL = 'サイズ不明'

STATUS_LABELS = {
    'pending': '未対応',
    'in-progress': '対応中',
    'completed': '対応完了',
    'cancelled': '対応不要',
}

NO_LOCATION_LABEL = '位置データなし'


def type_label(damage_type):
    return TYPE_LABELS.get(damage_type) or damage_type or '不明'


def size_label(size):
    return SIZE_LABELS.get(size, UNKNOWN_SIZE_LABEL)


def status_label(status):
    # Unknown statuses are shown as pending, like a record nobody touched yet
    return STATUS_LABELS.get(status, STATUS_LABELS['pending'])


def month_label(month):
    """'2025-08' -> '2025年8月'"""
    year, _, mon = month.partition('-')
    if not mon.isdigit():
        return month
    return f"{year}年{int(mon)}月"


def gps_label(record):
    return record.gps if record.has_location else NO_LOCATION_LABEL
