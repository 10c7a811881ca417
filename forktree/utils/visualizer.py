"""
Block Tree Visualizer
=====================

Read-only ``rich`` views of a ``Blockchain``:

- **Fork tree**: every retained node, branching wherever blocks share a
  parent, with the best tip highlighted.

- **Chain info**: node count, best height and hash, number of branch tips,
  pending pool size and UTXO count at the best tip.

- **Pending pool**: table of transactions waiting to be mined.

Output goes to a ``rich.console.Console``; pass one writing to a file or
``io.StringIO`` to capture it.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from rich.tree import Tree

if TYPE_CHECKING:
    from forktree.core.blockchain import Blockchain

logger = logging.getLogger(__name__)


def _truncate_hash(h: Optional[str], length: int = 16) -> str:
    """Return the first *length* characters of a hex hash."""
    if h is None:
        return "None"
    return h[:length]


class ChainVisualizer:
    """
    Rich CLI views of the block tree.

    Attributes:
        blockchain: The Blockchain to display.
        console: The ``rich.console.Console`` used for all output.
    """

    def __init__(self, blockchain: "Blockchain", console: Optional[Console] = None) -> None:
        self.blockchain = blockchain
        self.console = console if console is not None else Console()

    # ------------------------------------------------------------------
    # Fork tree
    # ------------------------------------------------------------------

    def print_fork_tree(self) -> None:
        """
        Display the tree from its oldest retained root(s), marking the best tip.

        Only forks add a level of nesting, so long chains render at a
        constant depth.
        """
        bc = self.blockchain
        best_hash = bc.get_best_tip_hash()
        tips = set(bc.get_tips())

        def _label(block_hash: str) -> str:
            block = bc.get_block(block_hash)
            marker = ""
            if block_hash == best_hash:
                marker = " [bold green]<-- BEST TIP[/bold green]"
            elif block_hash in tips:
                marker = " [yellow](tip)[/yellow]"
            return (
                f"[bold]H{bc.get_height(block_hash)}[/bold] {_truncate_hash(block_hash)} "
                f"[dim]({len(block.transactions)} txs)[/dim]{marker}"
            )

        tree = Tree("[bold]Block tree[/bold]", guide_style="blue")
        stack = [(root_hash, tree) for root_hash in reversed(bc.get_roots())]
        while stack:
            block_hash, parent_branch = stack.pop()
            segment = parent_branch.add(_label(block_hash))
            fork_branch = segment
            children = bc.get_children(block_hash)
            # Single-child runs are listed flat under their first block.
            while len(children) == 1:
                fork_branch = segment.add(_label(children[0]))
                children = bc.get_children(children[0])
            for child_hash in reversed(children):
                stack.append((child_hash, fork_branch))

        self.console.print(Panel(tree, title="Fork Tree", border_style="blue"))

    # ------------------------------------------------------------------
    # Chain info summary
    # ------------------------------------------------------------------

    def print_chain_info(self) -> None:
        """
        Print high-level statistics about the tree.
        """
        bc = self.blockchain
        info = (
            f"[bold]Best Height:[/bold]   {bc.best_height}\n"
            f"[bold]Best Tip:[/bold]      {_truncate_hash(bc.get_best_tip_hash())}\n"
            f"[bold]Nodes:[/bold]         {len(bc)}\n"
            f"[bold]Branch Tips:[/bold]   {len(bc.get_tips())}\n"
            f"[bold]Pending Txs:[/bold]   {bc.get_pending_pool().size}\n"
            f"[bold]UTXO Count:[/bold]    {bc.get_best_tip_utxo_snapshot().size():,}"
        )

        self.console.print(Panel(info, title="Chain Info", border_style="cyan"))

    # ------------------------------------------------------------------
    # Pending pool
    # ------------------------------------------------------------------

    def print_mempool(self) -> None:
        """
        Print the pending transactions in arrival order.
        """
        pool = self.blockchain.get_pending_pool()

        if pool.size == 0:
            self.console.print("[yellow]Pending pool is empty.[/yellow]")
            return

        table = Table(
            title=f"Pending Transactions ({pool.size})",
            show_header=True,
            header_style="bold yellow",
            border_style="yellow",
        )
        table.add_column("#", justify="right", style="dim")
        table.add_column("TXID", style="green")
        table.add_column("Inputs", justify="right")
        table.add_column("Outputs", justify="right")
        table.add_column("Output Value", justify="right", style="cyan")

        for i, tx in enumerate(pool.get_transactions()):
            table.add_row(
                str(i + 1),
                _truncate_hash(tx.txid),
                str(len(tx.inputs)),
                str(len(tx.outputs)),
                f"{tx.total_output_value():,}",
            )

        self.console.print(table)
