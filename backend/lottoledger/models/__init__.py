from .tenancy import Store
from .boxes import Box, BoxMetricSample
from .tickets import TicketPack

__all__ = [
    'Store',
    'Box', 'BoxMetricSample',
    'TicketPack',
]
