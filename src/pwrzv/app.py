"""pwrzv - live power reserve dashboard."""

from queue import Empty, Queue

from textual.app import App, ComposeResult
from textual.containers import Container
from textual.widgets import DataTable, Footer, Static

from pwrzv.engine import PowerReserveMeter
from pwrzv.models import ComponentScore, DetailedResult
from pwrzv.monitor import MonitorUpdate, ReserveMonitor

LEVEL_COLORS = {0: "red", 1: "red", 2: "yellow", 3: "cyan", 4: "green", 5: "green"}


def level_bar(level: int, width: int = 5) -> str:
    """Gauge of filled and empty cells for a 0-5 level."""
    filled = max(0, min(width, level))
    color = LEVEL_COLORS.get(level, "white")
    return f"[{color}]" + "█" * filled + f"[/{color}]" + "[dim]░[/dim]" * (width - filled)


class ReserveHeader(Static):
    """Header widget showing the overall level and bottleneck."""

    DEFAULT_CSS = """
    ReserveHeader {
        height: auto;
        min-height: 4;
        padding: 1;
        background: $surface;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ReserveHeader."""
        super().__init__("Collecting metrics...", *args, **kwargs)
        self._result: DetailedResult | None = None
        self._error: str | None = None

    def show_update(self, update: MonitorUpdate) -> None:
        """Render a monitor update."""
        if update.result is not None:
            self._result = update.result
            self._error = None
        else:
            self._error = str(update.error)
        self.update(self._format_update(update))

    def _format_update(self, update: MonitorUpdate) -> str:
        stamp = update.timestamp.astimezone().strftime("%Y-%m-%d %H:%M:%S")
        if self._error is not None:
            return f"[red]Error:[/red] {self._error}\nLast attempt: {stamp}"
        result = self._result
        lines = [
            f"Power Reserve \\[{level_bar(result.overall_score)}] "
            f"{result.overall_score}/5  {result.level_description}",
            f"Bottleneck: {', '.join(result.bottleneck) or 'None'}   "
            f"Platform: {result.platform.value}   Updated: {stamp}",
        ]
        if result.warnings:
            lines.append("[yellow]Config:[/yellow] " + "; ".join(result.warnings))
        return "\n".join(lines)


class ComponentTable(Container):
    """Container for the per-metric score table."""

    DEFAULT_CSS = """
    ComponentTable {
        height: 1fr;
        border: solid $primary;
    }
    """

    def __init__(self, *args, **kwargs) -> None:
        """Initialize ComponentTable."""
        super().__init__(*args, **kwargs)
        self._current_rows: set[str] = set()

    def compose(self) -> ComposeResult:
        """Compose the component table."""
        yield DataTable(id="component-table")

    def on_mount(self) -> None:
        """Initialize the data table when mounted."""
        table = self.query_one("#component-table", DataTable)
        table.cursor_type = "row"

        table.add_column("Metric", key="metric", width=26)
        table.add_column("Pressure", key="pressure", width=10)
        table.add_column("Score", key="score", width=8)
        table.add_column("Level", key="level", width=8)
        table.add_column("Gauge", key="gauge")

    def update_components(self, result: DetailedResult) -> None:
        """
        Update the table with the components of a new result.

        Existing rows are updated in place; rows for metrics that dropped out
        of this evaluation are removed.
        """
        table = self.query_one("#component-table", DataTable)
        bottleneck = set(result.bottleneck)
        new_rows = {c.name for c in result.component_scores}

        for name in self._current_rows - new_rows:
            table.remove_row(name)

        for component in result.component_scores:
            cells = self._cells(component, component.name in bottleneck)
            if component.name in self._current_rows:
                for key, value in zip(("metric", "pressure", "score", "level", "gauge"), cells):
                    table.update_cell(component.name, key, value)
            else:
                table.add_row(*cells, key=component.name)

        self._current_rows = new_rows

    @staticmethod
    def _cells(component: ComponentScore, is_bottleneck: bool) -> tuple[str, ...]:
        name = f"[bold]{component.name}[/bold] ◀" if is_bottleneck else component.name
        return (
            name,
            f"{component.raw_value:.3f}",
            f"{component.score:.3f}",
            str(component.level),
            level_bar(component.level),
        )


class PwrzvApp(App):
    """Live power reserve dashboard."""

    TITLE = "pwrzv"
    SUB_TITLE = "Power Reserve Meter"

    CSS = """
    Screen {
        layout: vertical;
    }

    #reserve-header {
        dock: top;
        height: auto;
        min-height: 4;
    }
    """

    BINDINGS = [
        ("q", "quit", "Quit"),
        ("r", "refresh", "Refresh"),
    ]

    def __init__(self, meter: PowerReserveMeter | None = None, poll_rate: float = 3.0) -> None:
        """Initialize the PwrzvApp."""
        super().__init__()
        self._update_queue: Queue[MonitorUpdate] = Queue()
        self._monitor = ReserveMonitor(self._update_queue, meter=meter, poll_rate=poll_rate)

    def compose(self) -> ComposeResult:
        """Compose the application layout."""
        yield ReserveHeader(id="reserve-header")
        yield ComponentTable()
        yield Footer()

    def on_mount(self) -> None:
        """Start the reserve monitor when the app is mounted."""
        self._monitor.start()
        self.set_interval(0.5, self._check_for_updates)

    def _check_for_updates(self) -> None:
        """Drain the queue and render the most recent update."""
        update = None
        while True:
            try:
                update = self._update_queue.get_nowait()
            except Empty:
                break

        if update is not None:
            self.show_update(update)

    def show_update(self, update: MonitorUpdate) -> None:
        """Render one monitor update."""
        self.query_one("#reserve-header", ReserveHeader).show_update(update)
        if update.result is not None:
            self.query_one(ComponentTable).update_components(update.result)

    def action_refresh(self) -> None:
        """Ask the monitor for an immediate evaluation."""
        self._monitor.poll_now()
        self.notify("Refreshing...")

    def action_quit(self) -> None:
        """Handle quit action with graceful cleanup."""
        self._monitor.stop()
        self.exit()
