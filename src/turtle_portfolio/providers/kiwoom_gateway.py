"""Kiwoom Securities REST API gateway.

Covers the two calls the portfolio service needs: OAuth token issue
(``/oauth2/token``) and the account evaluation balance inquiry (``kt00018``).
"""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from turtle_portfolio.core.exceptions import BrokerAuthenticationError, BrokerUnavailableError
from turtle_portfolio.core.timezone import now_kst, parse_datetime_kst
from turtle_portfolio.domain.models import BrokerPosition, BrokerSession, BrokerSnapshot

logger = logging.getLogger(__name__)

TOKEN_PATH = "/oauth2/token"
ACCOUNT_PATH = "/api/dostk/acnt"
BALANCE_API_ID = "kt00018"


def _to_decimal(value: Any) -> Decimal:
    """Parse Kiwoom numeric strings such as ``"000000071000"`` or ``"-1.25"``."""
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value).strip().replace(",", ""))
    except InvalidOperation:
        return Decimal("0")


def _to_int(value: Any) -> int:
    return int(_to_decimal(value))


class KiwoomBrokerGateway:
    """
    Synchronous Kiwoom REST client.

    No retries: a failed call surfaces immediately so the caller can degrade
    and try again on its next request.
    """

    def __init__(self, base_url: str, client: Optional[httpx.Client] = None):
        self._base_url = base_url.rstrip("/")
        self._client = client

    def _get_client(self) -> httpx.Client:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.Client(base_url=self._base_url)
        return self._client

    def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client and not self._client.is_closed:
            self._client.close()
            self._client = None

    def authenticate(self, app_key: str, secret_key: str, timeout: float) -> BrokerSession:
        """Issue an access token with the client-credentials grant."""
        if not app_key or not secret_key:
            raise BrokerAuthenticationError("Kiwoom credentials are not configured")

        data = self._post(
            TOKEN_PATH,
            json={
                "grant_type": "client_credentials",
                "appkey": app_key,
                "secretkey": secret_key,
            },
            headers={},
            timeout=timeout,
            error_cls=BrokerAuthenticationError,
        )
        token = data.get("token")
        if not token:
            raise BrokerAuthenticationError(
                f"Kiwoom token issue failed: {data.get('return_msg') or 'no token in response'}"
            )

        expires_at = None
        if data.get("expires_dt"):
            try:
                expires_at = parse_datetime_kst(str(data["expires_dt"]))
            except (ValueError, OverflowError):
                logger.warning("Unparseable Kiwoom token expiry: %s", data["expires_dt"])

        logger.info("Kiwoom token issued (expires %s)", expires_at)
        return BrokerSession(access_token=token, issued_at=now_kst(), expires_at=expires_at)

    def is_authenticated(self, session: Optional[BrokerSession]) -> bool:
        return session is not None and session.is_valid(now_kst())

    def get_account_balance(self, session: BrokerSession, timeout: float) -> BrokerSnapshot:
        """Query the account evaluation balance (kt00018)."""
        if not self.is_authenticated(session):
            raise BrokerAuthenticationError("Kiwoom session is missing or expired")

        data = self._post(
            ACCOUNT_PATH,
            json={
                "qry_tp": "1",  # 1: aggregated
                "dmst_stex_tp": "KRX",
            },
            headers={
                "authorization": f"Bearer {session.access_token}",
                "cont-yn": "N",
                "next-key": "",
                "api-id": BALANCE_API_ID,
            },
            timeout=timeout,
            error_cls=BrokerUnavailableError,
        )
        return self.parse_balance(data)

    @staticmethod
    def parse_balance(data: dict[str, Any]) -> BrokerSnapshot:
        """
        Convert a kt00018 payload to a snapshot.

        Cash is the estimated deposit asset minus the evaluated stock value;
        rows with zero remaining quantity are dropped. A reply without the
        estimated deposit asset figure yields ``total_asset=None`` and zero cash.
        """
        raw_total = data.get("prsm_dpst_aset_amt")
        total_asset = None if raw_total in (None, "") else _to_decimal(raw_total)
        stock_value = _to_decimal(data.get("tot_evlt_amt"))

        positions = []
        for item in data.get("acnt_evlt_remn_indv_tot") or []:
            quantity = _to_int(item.get("rmnd_qty"))
            if quantity <= 0:
                continue
            positions.append(
                BrokerPosition(
                    # Kiwoom prefixes codes with a market letter (A005930)
                    symbol=str(item.get("stk_cd") or "").lstrip("A"),
                    name=str(item.get("stk_nm") or "").strip(),
                    quantity=quantity,
                    avg_price=_to_decimal(item.get("pur_pric")),
                    current_price=_to_decimal(item.get("cur_prc")),
                    unrealized_pl=_to_decimal(item.get("evltv_prft")),
                )
            )

        return BrokerSnapshot(
            cash=(total_asset - stock_value) if total_asset is not None else Decimal("0"),
            total_asset=total_asset,
            stock_value=stock_value,
            positions=tuple(positions),
            fetched_at=now_kst(),
        )

    def _post(
        self,
        path: str,
        json: dict[str, Any],
        headers: dict[str, str],
        timeout: float,
        error_cls: type,
    ) -> dict[str, Any]:
        client = self._get_client()
        try:
            response = client.post(
                path,
                json=json,
                headers={"Content-Type": "application/json;charset=UTF-8", **headers},
                timeout=timeout,
            )
        except httpx.TimeoutException as exc:
            raise BrokerUnavailableError(f"Kiwoom {path} timed out after {timeout}s") from exc
        except httpx.HTTPError as exc:
            raise BrokerUnavailableError(f"Kiwoom {path} request failed: {exc}") from exc

        if response.status_code == 401:
            raise BrokerAuthenticationError(f"Kiwoom {path} rejected credentials (401)")
        if response.status_code != 200:
            raise error_cls(f"Kiwoom {path} returned {response.status_code}: {response.text[:200]}")

        try:
            data = response.json()
        except ValueError as exc:
            raise error_cls(f"Kiwoom {path} returned a non-JSON body") from exc
        if not isinstance(data, dict):
            raise error_cls(f"Kiwoom {path} returned {type(data).__name__}, expected object")

        return_code = data.get("return_code", 0)
        if return_code not in (0, "0"):
            raise error_cls(f"Kiwoom {path} error {return_code}: {data.get('return_msg')}")
        return data
