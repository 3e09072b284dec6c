import contextlib
import io
import tempfile
import unittest
from pathlib import Path
from unittest import mock

import music_edit
from edit_errors import InvalidInput, ProbeFailure, RenderFailure
from filtergraph_builder import FadeDirection, StageRole


class TestParser(unittest.TestCase):
    def test_defaults(self):
        args = music_edit.build_parser().parse_args(["-a", "song.mp3", "-i", "pics"])
        self.assertEqual(args.audio, Path("song.mp3"))
        self.assertEqual(args.images, Path("pics"))
        self.assertEqual(args.fade, 2.0)
        self.assertEqual(args.output, Path("output.mp4"))
        self.assertFalse(args.dry_run)

    def test_long_options(self):
        args = music_edit.build_parser().parse_args(
            ["--audio", "s.wav", "--images", "p", "--fade", "0.5", "--output", "x.mp4", "--dry-run"])
        self.assertEqual(args.fade, 0.5)
        self.assertEqual(args.output, Path("x.mp4"))
        self.assertTrue(args.dry_run)


class EditTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.root = Path(self._tmp.name)
        self.pics = self.root / "pics"
        self.pics.mkdir()
        self.audio = self.root / "song.mp3"
        self.output = self.root / "out" / "edit.mp4"

    def tearDown(self):
        self._tmp.cleanup()

    def add_pictures(self, *names):
        for name in names:
            (self.pics / name).write_bytes(b"")


class TestRunEdit(EditTestCase):
    @mock.patch("music_edit.render")
    @mock.patch("music_edit.probe_duration", return_value=20.0)
    def test_full_pipeline(self, probe, render):
        self.add_pictures("03.jpg", "01.jpg", "02.png")
        result = music_edit.run_edit(self.pics, self.audio, self.output, fade=2.0)

        self.assertEqual(result, self.output)
        self.assertTrue(self.output.parent.is_dir())
        probe.assert_called_once_with(self.audio)

        inputs, audio, graph, output = render.call_args[0]
        self.assertEqual([p.name for p in inputs], ["01.jpg", "02.png", "03.jpg"])
        self.assertEqual(audio, self.audio)
        self.assertEqual(output, self.output)
        self.assertEqual(graph.image_count, 3)
        fades = graph.stages_for(StageRole.FADE)
        self.assertIs(fades[0].fades[0].direction, FadeDirection.IN)
        self.assertEqual(fades[1].fades, ())
        self.assertAlmostEqual(fades[2].fades[0].start, 10.0 / 3)

    @mock.patch("music_edit.render")
    @mock.patch("music_edit.probe_duration")
    def test_no_images_fails_before_probe(self, probe, render):
        with self.assertRaises(InvalidInput):
            music_edit.run_edit(self.pics, self.audio, self.output)
        probe.assert_not_called()
        render.assert_not_called()

    @mock.patch("music_edit.render")
    @mock.patch("music_edit.probe_duration")
    def test_negative_fade_fails_before_probe(self, probe, render):
        self.add_pictures("a.jpg")
        with self.assertRaises(InvalidInput):
            music_edit.run_edit(self.pics, self.audio, self.output, fade=-1.0)
        probe.assert_not_called()
        render.assert_not_called()

    @mock.patch("music_edit.render")
    @mock.patch("music_edit.probe_duration", return_value=4.0)
    def test_fades_longer_than_audio(self, _probe, render):
        self.add_pictures("a.jpg", "b.jpg")
        with self.assertRaises(InvalidInput):
            music_edit.run_edit(self.pics, self.audio, self.output, fade=2.0)
        render.assert_not_called()

    @mock.patch("music_edit.render")
    @mock.patch("music_edit.probe_duration", return_value=10.0)
    def test_dry_run_renders_nothing(self, _probe, render):
        self.add_pictures("a.jpg")
        buf = io.StringIO()
        with contextlib.redirect_stdout(buf):
            result = music_edit.run_edit(self.pics, self.audio, self.output, preview=True)
        self.assertIsNone(result)
        render.assert_not_called()
        text = buf.getvalue()
        self.assertIn("DRY RUN", text)
        self.assertIn("a.jpg", text)
        self.assertIn("6.0000s", text)


class TestMain(EditTestCase):
    @mock.patch("music_edit.render")
    @mock.patch("music_edit.probe_duration", return_value=30.0)
    def test_success_exit_code(self, _probe, _render):
        self.add_pictures("a.jpg", "b.jpg")
        argv = ["-a", str(self.audio), "-i", str(self.pics), "-o", str(self.output)]
        self.assertEqual(music_edit.main(argv), 0)

    def test_missing_image_directory(self):
        argv = ["-a", str(self.audio), "-i", str(self.root / "nope")]
        with self.assertLogs("music_edit", level="ERROR"):
            self.assertEqual(music_edit.main(argv), 1)

    @mock.patch("music_edit.probe_duration", side_effect=ProbeFailure("ffprobe failed"))
    def test_probe_failure_exit_code(self, _probe):
        self.add_pictures("a.jpg")
        argv = ["-a", str(self.audio), "-i", str(self.pics)]
        self.assertEqual(music_edit.main(argv), 1)

    @mock.patch("music_edit.render", side_effect=RenderFailure("render failed", returncode=1))
    @mock.patch("music_edit.probe_duration", return_value=30.0)
    def test_render_failure_exit_code(self, _probe, _render):
        self.add_pictures("a.jpg")
        argv = ["-a", str(self.audio), "-i", str(self.pics), "-o", str(self.output)]
        self.assertEqual(music_edit.main(argv), 1)


if __name__ == "__main__":
    unittest.main()
