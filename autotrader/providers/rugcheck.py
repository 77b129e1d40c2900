"""
RugCheck Client - contract safety and insider/bundle risk.

One report per token (cached for an hour; contract properties rarely
change) is read three ways:

    check_safety       -> SafetyResult   (SafetyChecker)
    check_bundle_risk  -> BundleRisk     (BundleAnalyzer)
    holder_stats       -> (holders, top10 %) for DexScreenerClient

Blocking flags: danger-level risks, active mint or freeze authority,
and tokens already marked rugged. Everything else is a warning that
costs score points.

Usage:
    from autotrader.providers import RugCheckClient

    rugcheck = RugCheckClient()
    safety = await rugcheck.check_safety(address)
    bundle = await rugcheck.check_bundle_risk(address)
"""
import asyncio
import logging
from typing import Dict, Optional, Tuple

import aiohttp

from ..core.cache import TTLCache
from ..interfaces import BundleAnalyzer, SafetyChecker
from ..models import BundleRisk, RiskLevel, SafetyResult

logger = logging.getLogger(__name__)


RUGCHECK_API = "https://api.rugcheck.xyz/v1"

# Bundle scoring
CRITICAL_INSIDER_SUPPLY = 60.0     # % of supply in insider wallets
HIGH_INSIDER_SUPPLY = 40.0
MEDIUM_INSIDER_SUPPLY = 20.0
HIGH_INSIDER_WALLETS = 10          # Insider network size
MEDIUM_INSIDER_WALLETS = 5
HIGH_TOP10 = 60.0


def risk_level_for(risk_score: float) -> RiskLevel:
    if risk_score >= 70:
        return RiskLevel.CRITICAL
    if risk_score >= 50:
        return RiskLevel.HIGH
    if risk_score >= 30:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def _risk_name(risk: dict) -> str:
    name = risk.get('name') or risk.get('description') or 'unknown risk'
    return name.upper().replace(' ', '_')


def _is_danger(risk: dict) -> bool:
    level = (risk.get('level') or risk.get('severity') or '').lower()
    return level in ('danger', 'critical')


def top10_percent(report: dict) -> float:
    holders = report.get('topHolders')
    if isinstance(holders, list) and holders:
        return round(sum(float(h.get('pct') or 0) for h in holders[:10]), 2)
    return 100.0


def safety_from_report(report: dict) -> SafetyResult:
    """Contract safety, 0-100 (higher is safer)."""
    blocking = []
    warnings = []
    score = 100.0

    for risk in report.get('risks') or []:
        if _is_danger(risk):
            blocking.append(_risk_name(risk))
        else:
            warnings.append(_risk_name(risk))
            score -= 10

    token = report.get('token') or {}
    if report.get('mintAuthority') or token.get('mintAuthority'):
        blocking.append('MINT_AUTHORITY_ACTIVE')
    if report.get('freezeAuthority') or token.get('freezeAuthority'):
        blocking.append('FREEZE_AUTHORITY_ACTIVE')
    if report.get('rugged') or (report.get('tokenMeta') or {}).get('rugged'):
        blocking.append('RUGGED')

    markets = report.get('markets') or []
    lp_locked = any(
        float((m.get('lp') or {}).get('lpLockedPct') or 0) > 50
        for m in markets
    )
    if markets and not lp_locked:
        warnings.append('LP_NOT_LOCKED')
        score -= 15

    top10 = top10_percent(report)
    if top10 > HIGH_TOP10:
        warnings.append('TOP10_CONCENTRATED')
        score -= 10

    if blocking:
        score = min(score, 20.0)
    return SafetyResult(
        score=max(0.0, min(100.0, score)),
        blocking_flags=tuple(dict.fromkeys(blocking)),
        warnings=tuple(dict.fromkeys(warnings)),
    )


def bundle_from_report(report: dict) -> BundleRisk:
    """Insider/bundle risk, 0-100 (higher is riskier)."""
    holders = report.get('topHolders') or []
    insider_supply = sum(float(h.get('pct') or 0) for h in holders if h.get('insider'))
    insider_wallets = int(report.get('graphInsidersDetected') or 0)

    risk = 0.0
    flags = []
    if insider_supply >= CRITICAL_INSIDER_SUPPLY:
        risk += 35
        flags.append('CRITICAL_INSIDER_CONCENTRATION')
    elif insider_supply >= HIGH_INSIDER_SUPPLY:
        risk += 25
        flags.append('HIGH_INSIDER_CONCENTRATION')
    elif insider_supply >= MEDIUM_INSIDER_SUPPLY:
        risk += 15
        flags.append('INSIDER_CONCENTRATION')

    if insider_wallets >= HIGH_INSIDER_WALLETS:
        risk += 35
        flags.append('LARGE_INSIDER_NETWORK')
    elif insider_wallets >= MEDIUM_INSIDER_WALLETS:
        risk += 20
        flags.append('INSIDER_NETWORK')
    elif insider_wallets > 0:
        risk += 10
        flags.append('INSIDERS_DETECTED')

    if top10_percent(report) > HIGH_TOP10:
        risk += 15
        flags.append('TOP10_CONCENTRATED')

    risk = min(100.0, risk)
    return BundleRisk(risk_score=risk, risk_level=risk_level_for(risk), flags=tuple(flags))


class RugCheckClient(SafetyChecker, BundleAnalyzer):
    """RugCheck report client; one cached report serves every view."""

    def __init__(self, timeout: float = 15.0, cache_ttl: float = 3600.0):
        self.timeout = timeout
        self._reports: TTLCache = TTLCache(ttl=cache_ttl, max_size=500)
        self._session: Optional[aiohttp.ClientSession] = None
        self.requests = 0
        self.errors = 0

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    async def close(self):
        if self._session is not None and not self._session.closed:
            await self._session.close()

    async def fetch_report(self, address: str) -> Optional[dict]:
        return await self._reports.get_or_load(address, lambda: self._request(address))

    async def _request(self, address: str) -> Optional[dict]:
        session = await self._get_session()
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        url = f"{RUGCHECK_API}/tokens/{address}/report"
        self.requests += 1
        try:
            async with session.get(url, timeout=timeout) as resp:
                if resp.status != 200:
                    self.errors += 1
                    logger.debug(f"RugCheck {resp.status} for {address[:8]}")
                    return None
                return await resp.json()
        except asyncio.TimeoutError:
            self.errors += 1
            logger.warning(f"RugCheck timeout for {address[:8]}")
            return None
        except aiohttp.ClientError as e:
            self.errors += 1
            logger.warning(f"RugCheck request failed for {address[:8]}: {e}")
            return None

    async def check_safety(self, address: str) -> Optional[SafetyResult]:
        report = await self.fetch_report(address)
        if report is None:
            return None
        result = safety_from_report(report)
        logger.debug(
            f"RugCheck {address[:8]}: safety {result.score:.0f}, "
            f"{len(result.blocking_flags)} blocking, {len(result.warnings)} warnings"
        )
        return result

    async def check_bundle_risk(self, address: str) -> Optional[BundleRisk]:
        report = await self.fetch_report(address)
        if report is None:
            return None
        return bundle_from_report(report)

    async def holder_stats(self, address: str) -> Optional[Tuple[int, float]]:
        report = await self.fetch_report(address)
        if report is None:
            return None
        return int(report.get('totalHolders') or 0), top10_percent(report)

    def get_stats(self) -> Dict[str, object]:
        return {
            'requests': self.requests,
            'errors': self.errors,
            'cache': self._reports.stats(),
        }
