from lxml import etree
from typing import List, Dict, Any
import io


def process_xml(file_content: bytes, limit: int = 5) -> List[Dict[str, Any]]:
    """Parse an XML document whose root children are records; keep the first ``limit``."""
    root = etree.parse(io.BytesIO(file_content)).getroot()

    records = []
    for record_element in root:
        if not isinstance(record_element.tag, str):
            continue  # comments / processing instructions
        record = {}
        for child in record_element:
            if isinstance(child.tag, str):
                record[etree.QName(child).localname] = child.text
        records.append(record)
        if len(records) >= limit:
            break

    return records
