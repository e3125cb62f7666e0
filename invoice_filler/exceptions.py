"""
invoice_filler.exceptions
Error taxonomy for the fill engine.

Failures scoped to one chain or one invoice are recovered by the caller
(omitted table entry, FAILED outcome). Failures fetching the work queue
abort the cycle.
"""


class InvoiceFillerError(Exception):
    """Base class for every error raised by this package"""


class ConfigurationError(InvoiceFillerError):
    """Missing or malformed asset, chain or settings entry. Fatal at startup."""


class UnknownAssetOnChain(ConfigurationError):
    """No descriptor exists for an (asset, chain) pair"""

    def __init__(self, asset: str, chain_id: str):
        super().__init__(f"No {asset} descriptor configured for chain {chain_id}")
        self.asset = asset
        self.chain_id = chain_id


class ReadError(InvoiceFillerError):
    """Balance lookup failed for a single chain"""

    def __init__(self, message: str, endpoint: str = ""):
        super().__init__(f"{endpoint}: {message}" if endpoint else message)
        self.endpoint = endpoint


class FeedError(InvoiceFillerError):
    """Invoice feed could not be fetched or parsed"""


class SubmissionError(InvoiceFillerError):
    """Fill intent submission was rejected or could not be sent"""


class RebalanceError(InvoiceFillerError):
    """Bridge executor failed while moving liquidity"""
