from .client import Client
from .client_credit_account import ClientCreditAccount
from .credit_transaction import CreditTransaction, CreditTransactionType
from .feature_credit_cost import FeatureCreditCost

__all__ = [
    "Client",
    "ClientCreditAccount",
    "CreditTransaction",
    "CreditTransactionType",
    "FeatureCreditCost",
]
