"""Oracle modules.

- client: OracleClient interface, request/response records, payload parsing
- errors: Oracle failure taxonomy
"""

from scoutcard.oracle.client import (
    OracleClient,
    OracleRequest,
    OracleResponse,
    parse_oracle_payload,
)
from scoutcard.oracle.errors import (
    AnalysisCancelled,
    MalformedOracleResponse,
    OracleError,
    OracleTimeout,
    OracleTotalFailure,
    OracleUnavailable,
)

__all__ = [
    "OracleClient",
    "OracleRequest",
    "OracleResponse",
    "parse_oracle_payload",
    "AnalysisCancelled",
    "MalformedOracleResponse",
    "OracleError",
    "OracleTimeout",
    "OracleTotalFailure",
    "OracleUnavailable",
]
