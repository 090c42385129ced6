import datetime
import json
import logging
import os
from contextlib import contextmanager
from typing import Optional, Generator, Callable
import pandas as pd
import streamlit as st
import altair as alt
from altair.utils.deprecation import AltairDeprecationWarning
import warnings

warnings.filterwarnings("ignore", category=AltairDeprecationWarning)
from algorithms import WeightConverter
from config import DEFAULT_DB_PATH, DEFAULT_YAML_PATH, configure_logging
from db import (
    DailyEntryRepository,
    ExerciseRepository,
    DataTransferRepository,
    SettingsRepository,
    RecordNotFoundError,
    DuplicateEntryError,
    entry_to_dict,
    exercise_to_dict,
)
from stats_service import StatisticsService

logger = logging.getLogger(__name__)


def format_entry_date(value: str) -> str:
    """Return ``YYYY-MM-DD`` as ``Mon DD, YYYY``; unparsable dates pass through."""
    try:
        return datetime.date.fromisoformat(value).strftime("%b %d, %Y")
    except (TypeError, ValueError):
        return str(value)


def export_file_name(kind: str, day: datetime.date) -> str:
    if kind == "json":
        return f"fitness-tracker-backup-{day.isoformat()}.json"
    if kind == "csv":
        return f"fitness-data-{day.isoformat()}.csv"
    raise ValueError(f"unknown export format: {kind}")


def parse_backup(raw: bytes) -> list:
    """Decode an uploaded JSON backup, which must hold a list of entries."""
    try:
        data = json.loads(raw)
    except ValueError as e:
        raise ValueError("Invalid backup file") from e
    if not isinstance(data, list):
        raise ValueError("Invalid backup file")
    return data


class TrackerApp:
    """Streamlit front end for logging and reviewing daily fitness data."""

    def __init__(
        self, db_path: str = DEFAULT_DB_PATH, yaml_path: str = DEFAULT_YAML_PATH
    ) -> None:
        self.settings_repo = SettingsRepository(db_path, yaml_path)
        self.entries = DailyEntryRepository(db_path)
        self.exercises = ExerciseRepository(db_path)
        self.transfer = DataTransferRepository(db_path)
        self.stats = StatisticsService(
            self.entries, self.exercises, self.settings_repo
        )
        self.weight_unit = self.settings_repo.get_text("weight_unit", "kg")
        self.dashboard_days = self.settings_repo.get_int("dashboard_days", 30)
        self.smoothing_window = self.settings_repo.get_int("smoothing_window", 7)
        self.show_help_tips = self.settings_repo.get_bool("show_help_tips", False)
        st.set_page_config(page_title="Fitness Tracker", layout="wide")
        self._state_init()

    def _state_init(self) -> None:
        if "log_date" not in st.session_state:
            st.session_state.log_date = self._initial_date()
        if "loaded_date" not in st.session_state:
            st.session_state.loaded_date = None
        if "exercise_rows" not in st.session_state:
            st.session_state.exercise_rows = []
        if "next_row_uid" not in st.session_state:
            st.session_state.next_row_uid = 0
        if "log_weight" not in st.session_state:
            st.session_state.log_weight = 0.0
        if "log_calories" not in st.session_state:
            st.session_state.log_calories = 0.0
        if "pending_delete" not in st.session_state:
            st.session_state.pending_delete = None

    @staticmethod
    def _initial_date() -> datetime.date:
        param = st.query_params.get("date")
        if param:
            try:
                return datetime.date.fromisoformat(param)
            except ValueError:
                st.warning(f"Ignoring invalid date parameter: {param}")
        return datetime.date.today()

    def _new_row(
        self, exercise_id: Optional[int] = None, ex_type: str = "", details: str = ""
    ) -> dict:
        uid = st.session_state.next_row_uid
        st.session_state.next_row_uid = uid + 1
        return {"uid": uid, "id": exercise_id, "type": ex_type, "details": details}

    def _metric_grid(self, metrics: list[tuple[str, str]]) -> None:
        """Render metrics in a responsive grid."""
        cols = st.columns(len(metrics))
        for col, (label, val) in zip(cols, metrics):
            col.metric(label, val)

    def _line_chart(
        self,
        data: dict[str, list],
        x: list[str],
        *,
        x_label: str = "x",
        y_label: str = "value",
    ) -> None:
        """Render a consistent line chart with accessible labels."""
        df = pd.DataFrame({"x": x})
        for key, values in data.items():
            df[key] = values
        long_df = df.melt("x", var_name="series", value_name="value")
        chart = (
            alt.Chart(long_df)
            .mark_line(point=True)
            .encode(
                x=alt.X("x", title=x_label),
                y=alt.Y("value", title=y_label, scale=alt.Scale(zero=False)),
                color=alt.Color(
                    "series",
                    scale=alt.Scale(scheme="dark2"),
                    legend=None if len(data) == 1 else alt.Legend(title="Series"),
                ),
            )
        )
        st.altair_chart(chart, use_container_width=True)

    def _bar_chart(
        self,
        data: dict[str, list],
        x: list[str],
        *,
        x_label: str = "x",
        y_label: str = "value",
    ) -> None:
        """Render a consistent bar chart with accessible labels."""
        df = pd.DataFrame({"x": x})
        for key, values in data.items():
            df[key] = values
        long_df = df.melt("x", var_name="series", value_name="value")
        chart = (
            alt.Chart(long_df)
            .mark_bar()
            .encode(
                x=alt.X("x", title=x_label),
                y=alt.Y("value", title=y_label),
                color=alt.Color(
                    "series",
                    scale=alt.Scale(scheme="dark2"),
                    legend=None if len(data) == 1 else alt.Legend(title="Series"),
                ),
            )
        )
        st.altair_chart(chart, use_container_width=True)

    def _show_dialog(self, title: str, content_fn: Callable[[], None]) -> None:
        """Display a modal dialog using the decorator API."""

        @st.dialog(title)
        def _dlg() -> None:
            content_fn()

        _dlg()

    def _tab_tips(self, tips: list[str]) -> None:
        """Display a collapsible tips section."""
        if not self.show_help_tips:
            return
        with st.expander("Tips", expanded=False):
            for tip in tips:
                st.write(f"- {tip}")

    def _slugify(self, text: str) -> str:
        return text.lower().replace(" ", "_")

    @contextmanager
    def _section(self, title: str) -> Generator[None, None, None]:
        """Context manager for a styled section with an id for navigation."""
        ident = self._slugify(title)
        st.markdown(
            f"<div id='{ident}' class='section-wrapper'>", unsafe_allow_html=True
        )
        st.header(title)
        try:
            yield
        finally:
            st.markdown("</div>", unsafe_allow_html=True)

    def _format_weight(self, kg: Optional[float]) -> str:
        value = WeightConverter.to_display(kg, self.weight_unit)
        return "N/A" if value is None else f"{value} {self.weight_unit}"

    @staticmethod
    def _format_calories(calories: Optional[float]) -> str:
        return "N/A" if calories is None else f"{calories:g}"

    def run(self) -> None:
        st.title("Fitness Tracker")
        log_tab, dash_tab, data_tab, settings_tab = st.tabs(
            ["Log Entry", "Dashboard", "Data Management", "Settings"]
        )
        with log_tab:
            self._log_tab()
        with dash_tab:
            self._dashboard_tab()
        with data_tab:
            self._data_management_tab()
        with settings_tab:
            self._settings_tab()

    # Log Entry

    def _load_date(self, date: str) -> None:
        """Fill the form from the entry stored for ``date``."""
        row = self.entries.fetch_by_date(date)
        if row is None:
            st.session_state.log_weight = 0.0
            st.session_state.log_calories = 0.0
            st.session_state.exercise_rows = [self._new_row()]
        else:
            entry = entry_to_dict(row)
            weight = WeightConverter.to_display(entry["weight"], self.weight_unit)
            st.session_state.log_weight = float(weight or 0.0)
            st.session_state.log_calories = float(entry["calories"] or 0.0)
            rows = [
                self._new_row(ex["id"], ex["type"], ex["details"] or "")
                for ex in map(exercise_to_dict, self.exercises.fetch_for_entry(entry["id"]))
            ]
            st.session_state.exercise_rows = rows or [self._new_row()]
        st.session_state.loaded_date = date

    def _log_tab(self) -> None:
        with self._section("Log Entry"):
            self._tab_tips(
                [
                    "Pick a date to load an existing entry.",
                    "Exercises with a blank type are not saved.",
                ]
            )
            selected = st.date_input("Date", key="log_date")
            date = selected.isoformat()
            if st.session_state.loaded_date != date:
                self._load_date(date)
            st.number_input(
                f"Weight ({self.weight_unit})",
                min_value=0.0,
                step=0.1,
                key="log_weight",
            )
            st.number_input(
                "Calories", min_value=0.0, step=10.0, key="log_calories"
            )
            st.subheader("Exercises")
            for row in list(st.session_state.exercise_rows):
                uid = row["uid"]
                cols = st.columns([2, 3, 1])
                cols[0].text_input(
                    "Exercise Type",
                    value=row["type"],
                    key=f"ex_type_{uid}",
                    placeholder="e.g., Running, Push-ups",
                )
                cols[1].text_input(
                    "Details",
                    value=row["details"],
                    key=f"ex_details_{uid}",
                    placeholder="e.g., 5km in 30 mins, 3 sets of 10",
                )
                if cols[2].button("Remove", key=f"remove_row_{uid}"):
                    self._remove_row(row)
                    st.rerun()
            cols = st.columns(2)
            if cols[0].button("Add Exercise", key="add_exercise_row"):
                st.session_state.exercise_rows.append(self._new_row())
                st.rerun()
            if cols[1].button("Save Entry", key="save_entry", type="primary"):
                self._save_entry(date)

    def _remove_row(self, row: dict) -> None:
        if row["id"] is not None:
            try:
                self.exercises.remove(row["id"])
            except RecordNotFoundError:
                logger.warning("exercise %s already removed", row["id"])
        rows = [r for r in st.session_state.exercise_rows if r["uid"] != row["uid"]]
        st.session_state.exercise_rows = rows or [self._new_row()]

    def _save_entry(self, date: str) -> None:
        weight = WeightConverter.to_storage(
            st.session_state.log_weight or None, self.weight_unit
        )
        calories = st.session_state.log_calories or None
        try:
            existing = self.entries.fetch_by_date(date)
            if existing is None:
                entry_id = self.entries.create(date, weight, calories)
            else:
                entry_id = existing[0]
                self.entries.update(entry_id, weight, calories)
            saved = 0
            for row in st.session_state.exercise_rows:
                ex_type = st.session_state.get(f"ex_type_{row['uid']}", "").strip()
                details = st.session_state.get(f"ex_details_{row['uid']}", "").strip()
                if not ex_type:
                    continue
                if row["id"] is None:
                    row["id"] = self.exercises.add(entry_id, ex_type, details)
                else:
                    self.exercises.update(row["id"], ex_type, details)
                row["type"], row["details"] = ex_type, details
                saved += 1
        except DuplicateEntryError as e:
            st.error(f"{e} (entry {e.entry_id})")
            return
        except ValueError as e:
            st.error(str(e))
            return
        st.success(f"Entry saved for {format_entry_date(date)} with {saved} exercise(s)")

    # Dashboard

    def _dashboard_tab(self) -> None:
        with self._section("Dashboard"):
            self._tab_tips(
                [
                    "Exercise progress uses the first number in the details.",
                    "The moving average window is set under Settings.",
                ]
            )
            today = datetime.date.today()
            cols = st.columns(2)
            start = cols[0].date_input(
                "Start Date",
                today - datetime.timedelta(days=self.dashboard_days),
                key="dash_start",
            )
            end = cols[1].date_input("End Date", today, key="dash_end")
            if start > end:
                st.warning("Start date must not be after end date")
                return
            start_s, end_s = start.isoformat(), end.isoformat()
            overview = self.stats.overview(start_s, end_s)
            if not overview["entries"]:
                st.info("No entries for the selected range")
                return
            change = WeightConverter.to_display(
                overview["weight_change"], self.weight_unit
            )
            self._metric_grid(
                [
                    ("Entries", str(overview["entries"])),
                    ("Latest Weight", self._format_weight(overview["latest_weight"])),
                    ("Weight Change", f"{change:+} {self.weight_unit}"),
                    ("Avg Calories", f"{overview['avg_calories']:g}"),
                    ("Exercises", str(overview["exercises"])),
                ]
            )
            self._weight_charts(start_s, end_s)
            self._calorie_chart(start_s, end_s)
            self._exercise_chart(start_s, end_s)

    def _weight_charts(self, start: str, end: str) -> None:
        trend = self.stats.weight_trend(self.smoothing_window, start, end)
        if not trend:
            return
        st.subheader("Weight")

        def convert(value: float) -> float:
            return WeightConverter.to_display(value, self.weight_unit)

        data = {"Weight": [convert(t["weight"]) for t in trend]}
        if self.smoothing_window > 1:
            data[f"{self.smoothing_window}-day average"] = [
                convert(t["average"]) for t in trend
            ]
        self._line_chart(
            data,
            [t["date"] for t in trend],
            x_label="Date",
            y_label=f"Weight ({self.weight_unit})",
        )
        forecast = self.stats.weight_forecast(7, start, end)
        if forecast:
            st.subheader("Weight Forecast")
            self._line_chart(
                {"Forecast": [convert(f["value"]) for f in forecast]},
                [f["date"] for f in forecast],
                x_label="Date",
                y_label=f"Weight ({self.weight_unit})",
            )

    def _calorie_chart(self, start: str, end: str) -> None:
        history = self.stats.calorie_history(start, end)
        if not history:
            return
        st.subheader("Calories")
        self._bar_chart(
            {"Calories": [h["calories"] for h in history]},
            [h["date"] for h in history],
            x_label="Date",
            y_label="Calories",
        )

    def _exercise_chart(self, start: str, end: str) -> None:
        types = self.stats.exercise_types()
        if not types:
            return
        st.subheader("Exercise Progress")
        ex_type = st.selectbox("Exercise Type", types, key="dash_ex_type")
        progress = self.stats.exercise_progress(ex_type, start, end)
        if not progress:
            st.info(f"No numeric details logged for {ex_type}")
            return
        self._bar_chart(
            {ex_type: [p["value"] for p in progress]},
            [p["date"] for p in progress],
            x_label="Date",
            y_label="Value",
        )

    # Data Management

    def _data_management_tab(self) -> None:
        with self._section("Data Management"):
            records_tab, transfer_tab = st.tabs(["Data Records", "Import/Export"])
            with records_tab:
                self._records_view()
            with transfer_tab:
                self._import_export_view()

    def _records_view(self) -> None:
        rows = self.entries.fetch_entries()
        if not rows:
            st.session_state.pending_delete = None
            st.info("No entries recorded yet")
            return
        for row in rows:
            entry = entry_to_dict(row)
            eid = entry["id"]
            label = (
                f"{format_entry_date(entry['date'])} - "
                f"Weight: {self._format_weight(entry['weight'])} | "
                f"Calories: {self._format_calories(entry['calories'])}"
            )
            with st.expander(label):
                weight = WeightConverter.to_display(entry["weight"], self.weight_unit)
                cols = st.columns(2)
                new_weight = cols[0].number_input(
                    f"Weight ({self.weight_unit})",
                    min_value=0.0,
                    step=0.1,
                    value=float(weight or 0.0),
                    key=f"edit_weight_{eid}",
                )
                new_calories = cols[1].number_input(
                    "Calories",
                    min_value=0.0,
                    step=10.0,
                    value=float(entry["calories"] or 0.0),
                    key=f"edit_calories_{eid}",
                )
                cols = st.columns(2)
                if cols[0].button("Update", key=f"update_entry_{eid}"):
                    try:
                        self.entries.update(
                            eid,
                            WeightConverter.to_storage(
                                new_weight or None, self.weight_unit
                            ),
                            new_calories or None,
                        )
                        st.session_state.loaded_date = None
                        st.success("Entry updated")
                    except ValueError as e:
                        st.error(str(e))
                if cols[1].button("Delete", key=f"delete_entry_{eid}"):
                    st.session_state.pending_delete = ("entry", eid, entry["date"])
                self._exercise_records(eid)
        self._pending_delete_dialog()

    def _pending_delete_dialog(self) -> None:
        # kept in session state so the dialog survives the rerun of its buttons
        pending = st.session_state.pending_delete
        if pending is None:
            return
        kind, item_id, date = pending
        prefix = "entry" if kind == "entry" else "ex"
        keys = [f"{name}_{prefix}_{item_id}" for name in ("delete", "yes", "no")]
        if not any(st.session_state.get(k) for k in keys):
            # dialog was dismissed without an answer
            st.session_state.pending_delete = None
            return
        if kind == "entry":
            self._confirm_delete_entry(item_id, date)
        else:
            self._confirm_delete_exercise(item_id)

    def _exercise_records(self, entry_id: int) -> None:
        exercises = [exercise_to_dict(r) for r in self.exercises.fetch_for_entry(entry_id)]
        if not exercises:
            st.caption("No exercises")
            return
        st.markdown("**Exercises**")
        for ex in exercises:
            xid = ex["id"]
            cols = st.columns([2, 3, 1, 1])
            new_type = cols[0].text_input(
                "Type", value=ex["type"], key=f"edit_ex_type_{xid}"
            )
            new_details = cols[1].text_input(
                "Details", value=ex["details"] or "", key=f"edit_ex_details_{xid}"
            )
            if cols[2].button("Update", key=f"update_ex_{xid}"):
                try:
                    self.exercises.update(xid, new_type, new_details)
                    st.session_state.loaded_date = None
                    st.success("Exercise updated")
                except ValueError as e:
                    st.error(str(e))
            if cols[3].button("Delete", key=f"delete_ex_{xid}"):
                st.session_state.pending_delete = ("exercise", xid, ex["date"])

    def _confirm_delete_entry(self, entry_id: int, date: str) -> None:
        def _content() -> None:
            st.write(
                f"Delete the entry for {format_entry_date(date)} and all its exercises?"
            )
            cols = st.columns(2)
            if cols[0].button("Yes", key=f"yes_entry_{entry_id}"):
                try:
                    self.entries.delete(entry_id)
                except RecordNotFoundError as e:
                    st.error(str(e))
                st.session_state.pending_delete = None
                st.session_state.loaded_date = None
                st.rerun()
            if cols[1].button("No", key=f"no_entry_{entry_id}"):
                st.session_state.pending_delete = None
                st.rerun()

        self._show_dialog("Confirm Delete", _content)

    def _confirm_delete_exercise(self, exercise_id: int) -> None:
        def _content() -> None:
            st.write(f"Delete exercise {exercise_id}?")
            cols = st.columns(2)
            if cols[0].button("Yes", key=f"yes_ex_{exercise_id}"):
                try:
                    self.exercises.remove(exercise_id)
                except RecordNotFoundError as e:
                    st.error(str(e))
                st.session_state.pending_delete = None
                st.session_state.loaded_date = None
                st.rerun()
            if cols[1].button("No", key=f"no_ex_{exercise_id}"):
                st.session_state.pending_delete = None
                st.rerun()

        self._show_dialog("Confirm Delete", _content)

    def _import_export_view(self) -> None:
        today = datetime.date.today()
        st.subheader("Export")
        cols = st.columns(2)
        cols[0].download_button(
            "Download JSON Backup",
            data=json.dumps(self.transfer.export_data(), indent=2),
            file_name=export_file_name("json", today),
            mime="application/json",
            key="download_json",
        )
        cols[1].download_button(
            "Download CSV",
            data=self.transfer.export_csv(),
            file_name=export_file_name("csv", today),
            mime="text/csv",
            key="download_csv",
        )
        st.subheader("Import")
        uploaded = st.file_uploader("Upload Backup", type=["json"], key="backup_upload")
        if uploaded is None:
            return
        try:
            data = parse_backup(uploaded.getvalue())
        except ValueError as e:
            st.error(str(e))
            return
        st.warning(
            f"Importing will replace all existing data with {len(data)} entries."
        )
        confirmed = st.checkbox(
            "I understand this replaces all data", key="confirm_import"
        )
        if st.button("Import Data", key="import_data", disabled=not confirmed):
            try:
                count = self.transfer.import_data(data)
            except ValueError as e:
                st.error(f"Invalid backup file: {e}")
                return
            st.session_state.loaded_date = None
            st.success(f"Imported {count} entries")

    # Settings

    def _settings_tab(self) -> None:
        with self._section("Settings"):
            units = list(WeightConverter.UNITS)
            unit = st.selectbox(
                "Weight Unit",
                units,
                index=units.index(self.weight_unit) if self.weight_unit in units else 0,
                key="settings_weight_unit",
            )
            days = st.number_input(
                "Dashboard Days",
                min_value=1,
                step=1,
                value=self.dashboard_days,
                key="settings_dashboard_days",
            )
            window = st.number_input(
                "Smoothing Window",
                min_value=1,
                step=1,
                value=self.smoothing_window,
                key="settings_smoothing_window",
            )
            token = st.text_input(
                "API Token",
                value=self.settings_repo.get_text("api_token", ""),
                type="password",
                key="settings_api_token",
            )
            tips = st.checkbox(
                "Show Help Tips", value=self.show_help_tips, key="settings_help_tips"
            )
            if st.button("Save Settings", key="save_settings"):
                self.settings_repo.set_text("weight_unit", unit)
                self.settings_repo.set_int("dashboard_days", int(days))
                self.settings_repo.set_int("smoothing_window", int(window))
                self.settings_repo.set_text("api_token", token)
                self.settings_repo.set_bool("show_help_tips", tips)
                self.weight_unit = unit
                self.dashboard_days = int(days)
                self.smoothing_window = int(window)
                self.show_help_tips = tips
                st.session_state.loaded_date = None
                st.success("Settings saved")


if __name__ == "__main__":
    configure_logging()
    db_path = os.environ.get("DB_PATH", DEFAULT_DB_PATH)
    yaml_path = os.environ.get("YAML_PATH", DEFAULT_YAML_PATH)
    TrackerApp(db_path=db_path, yaml_path=yaml_path).run()
