"""
wbtariffs_shared — shared configuration, clients, models and errors for the
WB tariffs sync job.

Usage:
    from wbtariffs_shared.config import settings
    from wbtariffs_shared.db import get_supabase_client
    from wbtariffs_shared.models.tariff import TariffRecord
    from wbtariffs_shared.time_utils import to_tariff_date
    from wbtariffs_shared.constants import TARIFFS_TABLE, SHEET_NAME
"""

__version__ = "0.1.0"
