import json
import logging
from datetime import datetime, timezone


class JsonLinesFormatter(logging.Formatter):
    """
    One JSON object per line: timestamp, level, logger, message, data.

    ``data`` is whatever was passed as ``extra={'data': ...}``.
    """

    def format(self, record):
        entry = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'data': getattr(record, 'data', None),
        }
        if record.exc_info:
            entry['exception'] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)
