import io
import logging
from typing import Any, Dict, List

import pandas as pd

logger = logging.getLogger(__name__)


def process_excel(file_content: bytes, limit: int = 5) -> List[Dict[str, Any]]:
    """Read the first ``limit`` rows of the first sheet of a workbook."""
    try:
        df = pd.read_excel(io.BytesIO(file_content), nrows=limit, engine='openpyxl')
    except Exception:
        # Legacy .xls workbooks are not readable by openpyxl; let pandas pick.
        try:
            df = pd.read_excel(io.BytesIO(file_content), nrows=limit)
        except Exception as e:
            raise ValueError(f"Could not read Excel file: {str(e)}")

    df.columns = [str(column).strip() for column in df.columns]
    records = df.to_dict('records')

    # NaN / NaT cells become None so downstream checks treat them as missing
    for record in records:
        for key, value in record.items():
            if pd.isna(value):
                record[key] = None

    logger.info(f"Read {len(records)} preview rows from workbook")
    return records
