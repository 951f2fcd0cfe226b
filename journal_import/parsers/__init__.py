from .format_detector import UnsupportedFormat, detect_report_format
from .normalize import NormalizedTrade, detect_direction, detect_result, parse_number
from .report_parser import ReportParser, parse_report
