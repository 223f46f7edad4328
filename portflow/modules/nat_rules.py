"""
NAT Rule Module - Port-forward discovery from the iptables nat table.

Reads 'iptables -t nat -L -n' and keeps the rules that rewrite or redirect
traffic (DNAT, REDIRECT, MASQUERADE). Listing the nat table normally needs
root, so the unprivileged attempt goes through the privileged-retry protocol:
a permission refusal is reported back as needs_elevation and the caller may
then ask for the elevated listing.
"""

import re
from typing import List
from portflow.core.active_response import PrivilegeCoordinator
from portflow.core.schemas import ElevatedForwardResult, ForwardRule, Outcome
from portflow.utils.logger import Logger

IPTABLES_NAT_COMMAND = ["iptables", "-t", "nat", "-L", "-n"]

CHAIN_HEADER = "Chain"
FORWARD_TARGETS = ("DNAT", "REDIRECT", "MASQUERADE")
DPT_PATTERN = re.compile(r"dpt:([0-9]+)")
TO_PATTERN = re.compile(r"to:(\S+)")


def parse_iptables_output(output: str) -> List[ForwardRule]:
    """Parse an iptables nat listing into ForwardRule records.

    Chain headers ("Chain PREROUTING (policy ACCEPT)") set the chain for
    every rule line below them until the next header. Rule lines seen before
    any header get an empty chain.

    Args:
        output: Raw stdout of 'iptables -t nat -L -n'

    Returns:
        List[ForwardRule]: Forwarding rules in listing order
    """
    rules = []
    current_chain = ""

    for line in output.strip().splitlines():
        if line.startswith(CHAIN_HEADER):
            tokens = line.split()
            current_chain = tokens[1] if len(tokens) > 1 else ""
            continue

        if not any(target in line for target in FORWARD_TARGETS):
            continue

        parts = line.split()
        if len(parts) < 4:
            continue

        dpt = DPT_PATTERN.search(line)
        to = TO_PATTERN.search(line)

        rules.append(ForwardRule(
            chain=current_chain,
            target=parts[0],
            protocol=parts[1],
            source=parts[3],
            destination=parts[4] if len(parts) > 4 else "",
            dport=int(dpt.group(1)) if dpt else None,
            to_destination=to.group(1) if to else "",
            raw=line.strip(),
        ))

    return rules


class NatRuleMonitor:
    """Lists NAT forwarding rules, unprivileged first and elevated on request."""

    def __init__(self, coordinator: PrivilegeCoordinator):
        """Initialize the monitor.

        Args:
            coordinator: Privileged-retry coordinator that runs iptables
        """
        self.coordinator = coordinator
        self.logger = Logger()

    async def list_rules(self) -> ElevatedForwardResult:
        """Unprivileged listing.

        Returns:
            ElevatedForwardResult: Rules on success; outcome NEEDS_ELEVATION
            when iptables refused for lack of privilege
        """
        attempt = await self.coordinator.attempt(IPTABLES_NAT_COMMAND)
        if attempt.ok:
            return ElevatedForwardResult(ok=True, nat_rules=parse_iptables_output(attempt.result.stdout))

        limit = self.coordinator.config.message_length
        if attempt.outcome == Outcome.NEEDS_ELEVATION:
            error = "Permission denied. Elevated privileges required."
        else:
            error = (attempt.result.error_text or "iptables failed")[:limit]
            self.logger.warning(f"NAT listing failed: {error}")
        return ElevatedForwardResult(ok=False, outcome=attempt.outcome, error=error)

    async def list_rules_elevated(self) -> ElevatedForwardResult:
        """Elevated listing, only called after the user confirmed.

        Returns:
            ElevatedForwardResult: Rules on success; CANCELLED when the
            authentication prompt was dismissed; FAILED otherwise
        """
        attempt = await self.coordinator.escalate(IPTABLES_NAT_COMMAND)
        if attempt.ok:
            rules = parse_iptables_output(attempt.result.stdout)
            self.logger.success(f"NAT rules loaded with elevated privileges ({len(rules)} rules).")
            return ElevatedForwardResult(ok=True, nat_rules=rules)

        if attempt.outcome == Outcome.CANCELLED:
            return ElevatedForwardResult(ok=False, outcome=Outcome.CANCELLED, error="Authentication cancelled")

        limit = self.coordinator.config.message_length
        error = (attempt.result.error_text or "iptables failed")[:limit]
        return ElevatedForwardResult(ok=False, outcome=Outcome.FAILED, error=error)
