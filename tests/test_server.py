from __future__ import annotations

import base64
import tempfile
import unittest
from pathlib import Path
from unittest.mock import patch

from svg_graphs import server
from svg_graphs.layout import PALETTE
from svg_graphs.models import InvalidInputError


class TestServerRendering(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = Path(tempfile.mkdtemp(prefix="svg_graphs_server_test_"))
        server._configure_server(workdir=self.temp_dir, xml_declaration=True)

    def test_render_bar_graph_writes_svg(self) -> None:
        result = server.renderBarGraph(data={"A": 10, "B": 20, "C": 5}, width=300, height=200)
        payload = result.structuredContent
        self.assertFalse(result.isError)
        self.assertEqual(payload["kind"], "bar")
        self.assertEqual(payload["format"], "svg")
        self.assertEqual(payload["points"], 3)
        self.assertTrue(payload["labeled"])
        self.assertEqual(payload["colors"], [PALETTE[0]])
        self.assertEqual(payload["labels"], ["A", "B", "C"])

        image_path = Path(payload["image_path"])
        self.assertTrue(image_path.exists())
        self.assertEqual(image_path.parent, (self.temp_dir / "images" / "bar").resolve())
        text = image_path.read_text(encoding="utf-8")
        self.assertTrue(text.startswith('<?xml version="1.0"?>\n<svg'))

        image = result.content[0]
        self.assertEqual(image.mimeType, "image/svg+xml")
        self.assertEqual(base64.b64decode(image.data).decode("utf-8") + "\n", text)

    def test_render_line_graph_from_list(self) -> None:
        result = server.renderLineGraph(data=[5, 10, 15], name="trend")
        payload = result.structuredContent
        self.assertEqual(payload["kind"], "line")
        self.assertFalse(payload["labeled"])
        self.assertEqual(payload["width"], 500)
        self.assertEqual(payload["height"], 400)
        image_path = Path(payload["image_path"])
        self.assertTrue(image_path.name.endswith("_trend.svg"))
        self.assertIn("<polyline", image_path.read_text(encoding="utf-8"))

    def test_output_path_suffix_forced_to_svg(self) -> None:
        target = self.temp_dir / "out" / "chart.png"
        result = server.renderBarGraph(data=[1, 2, 3], output_path=str(target))
        self.assertEqual(Path(result.structuredContent["image_path"]), target.with_suffix(".svg").resolve())
        self.assertTrue(target.with_suffix(".svg").exists())

    def test_bare_svg_when_declaration_disabled(self) -> None:
        server._configure_server(workdir=self.temp_dir, xml_declaration=False, width=320, height=240)
        result = server.renderBarGraph(data={"x": 5, "y": 10})
        payload = result.structuredContent
        self.assertFalse(payload["xml_declaration"])
        self.assertEqual(payload["width"], 320)
        text = Path(payload["image_path"]).read_text(encoding="utf-8")
        self.assertTrue(text.startswith("<svg"))

    def test_render_from_csv(self) -> None:
        csv_path = self.temp_dir / "scores.csv"
        csv_path.write_text("name,score\nAmy,32\nFry,20\n", encoding="utf-8")
        result = server.renderGraphFromCsv(csv_path=str(csv_path), kind="line")
        payload = result.structuredContent
        self.assertEqual(payload["kind"], "line")
        self.assertEqual(payload["labels"], ["Amy", "Fry"])
        self.assertEqual(payload["csv_path"], str(csv_path.resolve()))
        self.assertTrue(Path(payload["image_path"]).name.endswith("_scores.svg"))

    def test_render_from_csv_bar_per_bar_colours(self) -> None:
        csv_path = self.temp_dir / "values.csv"
        csv_path.write_text("3\n4\n", encoding="utf-8")
        result = server.renderGraphFromCsv(csv_path=str(csv_path), color_per_bar=True)
        self.assertEqual(result.structuredContent["colors"], list(PALETTE[:2]))

    def test_degenerate_data_rejected_and_logged(self) -> None:
        with self.assertLogs("svg_graphs.server", level="WARNING") as captured:
            with self.assertRaises(InvalidInputError):
                server.renderBarGraph(data={"A": 0, "B": 0})
        self.assertTrue(any("render_rejected" in line for line in captured.output))
        history = server.getRenderHistory()
        self.assertEqual(history["events"][-1]["event"], "render_rejected")
        self.assertEqual(history["events"][-1]["level"], "WARNING")
        self.assertFalse(any(self.temp_dir.glob("images/**/*.svg")))

    def test_malformed_csv_rejected_and_logged(self) -> None:
        csv_path = self.temp_dir / "broken.csv"
        csv_path.write_text("A,1\nB,lots\n", encoding="utf-8")
        with self.assertLogs("svg_graphs.server", level="WARNING") as captured:
            with self.assertRaisesRegex(InvalidInputError, "line 2"):
                server.renderGraphFromCsv(csv_path=str(csv_path))
        self.assertTrue(any("render_rejected" in line for line in captured.output))
        event = server.getRenderHistory()["events"][-1]
        self.assertEqual(event["event"], "render_rejected")
        self.assertEqual(event["kind"], "bar")
        self.assertEqual(event["csv_path"], str(csv_path.resolve()))
        self.assertFalse(any(self.temp_dir.glob("images/**/*.svg")))

    def test_numeric_csv_labels_render_unlabeled(self) -> None:
        csv_path = self.temp_dir / "years.csv"
        csv_path.write_text("1,5\n2,10\n", encoding="utf-8")
        result = server.renderGraphFromCsv(csv_path=str(csv_path))
        self.assertFalse(result.structuredContent["labeled"])

    def test_history_records_successes(self) -> None:
        server.renderBarGraph(data=[1, 2])
        server.renderLineGraph(data=[1, 2])
        history = server.getRenderHistory(limit=1)
        self.assertEqual(history["returned"], 1)
        self.assertEqual(history["events"][0]["kind"], "line")
        self.assertEqual(server.getRenderHistory(limit=0)["events"], [])
        self.assertEqual(len(server.getRenderHistory()["events"]), 2)

    def test_configure_clears_history(self) -> None:
        server.renderBarGraph(data=[1, 2])
        server._configure_server(workdir=self.temp_dir)
        self.assertEqual(server.getRenderHistory()["returned"], 0)

    def test_palette(self) -> None:
        payload = server.getGraphPalette()
        self.assertEqual(payload["palette"], list(PALETTE))
        self.assertEqual(payload["marker_color"], "#2BA6CB")

    def test_write_failure_propagates(self) -> None:
        with patch("svg_graphs.server._resolve_image_output_path", return_value=self.temp_dir / "missing" / "x.svg"):
            with patch("pathlib.Path.write_text", side_effect=PermissionError("denied")):
                with self.assertRaises(PermissionError):
                    server.renderLineGraph(data=[1, 2])


class TestEnvironmentHelpers(unittest.TestCase):
    def test_read_env_bool(self) -> None:
        with patch.dict("os.environ", {"SVG_GRAPHS_TEST_FLAG": "yes"}):
            self.assertTrue(server._read_env_bool("SVG_GRAPHS_TEST_FLAG"))
        with patch.dict("os.environ", {"SVG_GRAPHS_TEST_FLAG": "off"}):
            self.assertFalse(server._read_env_bool("SVG_GRAPHS_TEST_FLAG", default=True))
        with patch.dict("os.environ", {"SVG_GRAPHS_TEST_FLAG": "maybe"}):
            self.assertTrue(server._read_env_bool("SVG_GRAPHS_TEST_FLAG", default=True))

    def test_read_env_int(self) -> None:
        with patch.dict("os.environ", {"SVG_GRAPHS_TEST_INT": "640"}):
            self.assertEqual(server._read_env_int("SVG_GRAPHS_TEST_INT", 1), 640)
        with patch.dict("os.environ", {"SVG_GRAPHS_TEST_INT": "wide"}):
            self.assertEqual(server._read_env_int("SVG_GRAPHS_TEST_INT", 1), 1)

    def test_safe_name(self) -> None:
        self.assertEqual(server._safe_name("Q3 sales/2024"), "Q3_sales_2024")
        self.assertEqual(server._safe_name("///"), "graph")


if __name__ == "__main__":
    unittest.main()
