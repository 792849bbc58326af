from .directory import Farmer, Staff
from .inventory import Item, DisbursementRecord, ReturnRecord
from .assets import Asset, AssetLoanRecord
from .requests import ApprovalRequest, ApprovalRequestLine
from .ledger import LedgerEvent

__all__ = [
    'Farmer', 'Staff',
    'Item', 'DisbursementRecord', 'ReturnRecord',
    'Asset', 'AssetLoanRecord',
    'ApprovalRequest', 'ApprovalRequestLine',
    'LedgerEvent',
]
