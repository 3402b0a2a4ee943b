"""
Static directory of partner banks that submit credit data.
"""
from typing import List, Optional

from credit_ingest.api.schemas.shared import Partner

PARTNER_BANKS: List[Partner] = [
    Partner(id="CBE", name="Commercial Bank of Ethiopia"),
    Partner(id="DBE", name="Development Bank of Ethiopia"),
    Partner(id="AWASH", name="Awash Bank"),
    Partner(id="DASHEN", name="Dashen Bank"),
    Partner(id="ABYSSINIA", name="Bank of Abyssinia"),
    Partner(id="WEGAGEN", name="Wegagen Bank"),
    Partner(id="NIB", name="Nib International Bank"),
    Partner(id="HIBRET", name="Hibret Bank"),
    Partner(id="LION", name="Lion International Bank"),
    Partner(id="COOP", name="Cooperative Bank of Oromia"),
    Partner(id="ZEMEN", name="Zemen Bank"),
    Partner(id="OROMIA", name="Oromia International Bank"),
    Partner(id="BUNNA", name="Bunna Bank"),
    Partner(id="BERHAN", name="Berhan Bank"),
    Partner(id="ABAY", name="Abay Bank"),
    Partner(id="ADDIS", name="Addis International Bank"),
    Partner(id="DEBUB", name="Debub Global Bank"),
    Partner(id="ENAT", name="Enat Bank"),
    Partner(id="GADAA", name="Gadaa Bank"),
    Partner(id="HIJRA", name="Hijra Bank"),
    Partner(id="SHABELLE", name="Shabelle Bank"),
    Partner(id="SIINQEE", name="Siinqee Bank"),
    Partner(id="TSEHAY", name="Tsehay Bank"),
    Partner(id="AMHARA", name="Amhara Bank"),
    Partner(id="AHADU", name="Ahadu Bank"),
    Partner(id="GOH", name="Goh Bank"),
    Partner(id="AMAN", name="Aman Bank"),
]

_BY_ID = {partner.id: partner for partner in PARTNER_BANKS}


def get_partner(partner_id: Optional[str]) -> Optional[Partner]:
    """Look up a partner by id (case-insensitive)."""
    if not partner_id:
        return None
    return _BY_ID.get(partner_id.strip().upper())
