"""Usage alert evaluation."""

from structlog import get_logger

from cohe.accounts.models import Alert, AlertType, Provider
from cohe.usage.models import Usage


logger = get_logger(__name__)


def check_alerts(usage: Usage, alerts: list[Alert]) -> list[Alert]:
    """Return the enabled alerts whose condition holds for ``usage``.

    ``usage`` alerts fire when the used percentage reaches the threshold and
    never fire while the limit is unknown (0 or less);
    ``quota`` alerts fire when the remaining amount drops to the threshold
    or below. Order follows ``alerts``; each alert appears at most once.
    """
    triggered: list[Alert] = []
    seen: set[str] = set()

    for alert in alerts:
        if not alert.enabled or alert.id in seen:
            continue

        if alert.type == AlertType.USAGE:
            fired = (
                usage.limit > 0
                and usage.used / usage.limit * 100 >= alert.threshold
            )
        elif alert.type == AlertType.QUOTA:
            fired = (usage.remaining or 0) <= alert.threshold
        else:
            fired = False

        if fired:
            seen.add(alert.id)
            triggered.append(alert)

    if triggered:
        logger.debug("alerts_triggered", alerts=[a.id for a in triggered])
    return triggered


def alert_usage_for(provider: Provider | str, usage: Usage) -> Usage:
    """Pick the snapshot alerts are evaluated against.

    Z.AI alerts follow the MCP (time window) quota; every other provider
    uses the primary snapshot.
    """
    if Provider(provider) == Provider.ZAI and usage.mcp_usage is not None:
        return usage.mcp_usage
    return usage


def check_usage_alerts(
    provider: Provider | str, usage: Usage, alerts: list[Alert]
) -> list[Alert]:
    return check_alerts(alert_usage_for(provider, usage), alerts)
