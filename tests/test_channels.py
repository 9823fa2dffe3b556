import unittest
import numpy as np

from pycamrig import Channel, ChannelGroup, ChannelKind, MissingChannelError


class TestChannelGroup(unittest.TestCase):
    """Tests for the typed channel store."""

    def setUp(self):
        self.group = ChannelGroup()

    def test_absent_channel(self):
        self.assertFalse(self.group.has_channel("depth"))
        self.assertNotIn("depth", self.group)
        with self.assertRaises(MissingChannelError):
            self.group.get_channel_data("depth")
        with self.assertRaises(KeyError):
            self.group.get_channel("depth")
        with self.assertRaises(MissingChannelError):
            self.group.remove_channel("depth")

    def test_add_channel_creates_empty_value(self):
        self.group.add_channel("track_ids", ChannelKind.VECTOR)
        self.assertTrue(self.group.has_channel("track_ids"))
        self.assertEqual(self.group.get_channel_data("track_ids").shape, (0,))
        self.assertIsNone(Channel("extra", ChannelKind.OBJECT).value)

        # Re-adding with the same kind keeps the data
        self.group.set_channel_data("track_ids", [1.0, 2.0], ChannelKind.VECTOR)
        self.group.add_channel("track_ids", ChannelKind.VECTOR)
        np.testing.assert_array_equal(self.group.get_channel_data("track_ids"), [1.0, 2.0])

        with self.assertRaises(TypeError):
            self.group.add_channel("track_ids", ChannelKind.MATRIX)

    def test_set_and_get(self):
        data = np.arange(6, dtype=np.float64).reshape(2, 3)
        self.group.set_channel_data("points", data, ChannelKind.MATRIX)
        stored = self.group.get_channel_data("points", ChannelKind.MATRIX)
        np.testing.assert_array_equal(stored, data)

        # Array channels copy their input
        data[0, 0] = 100.0
        self.assertEqual(stored[0, 0], 0.0)

        with self.assertRaises(TypeError):
            self.group.get_channel_data("points", ChannelKind.VECTOR)

    def test_kind_validation(self):
        with self.assertRaises(ValueError):
            self.group.set_channel_data("v", np.zeros((2, 2)), ChannelKind.VECTOR)
        with self.assertRaises(ValueError):
            self.group.set_channel_data("m", np.zeros(3), ChannelKind.MATRIX)
        with self.assertRaises(TypeError):
            self.group.set_channel_data("d", np.zeros((4, 2), dtype=np.float32), ChannelKind.DESCRIPTORS)
        with self.assertRaises(TypeError):
            self.group.set_channel_data("i", [[0, 1]], ChannelKind.IMAGE)
        self.assertEqual(len(self.group), 0)

    def test_image_stored_by_reference(self):
        image = np.zeros((4, 5), dtype=np.uint8)
        self.group.set_channel_data("image", image, ChannelKind.IMAGE)
        self.assertIs(self.group.get_channel_data("image"), image)

    def test_object_payload(self):
        payload = {"exposure_us": 1200, "gain": 2.0}
        self.group.set_channel_data("meta", payload, ChannelKind.OBJECT)
        self.assertIs(self.group.get_channel_data("meta"), payload)

    def test_remove_and_iterate(self):
        self.group.set_channel_data("a", [1.0], ChannelKind.VECTOR)
        self.group.set_channel_data("b", {"x": 1}, ChannelKind.OBJECT)
        self.assertEqual(set(self.group), {"a", "b"})
        self.assertEqual(set(self.group.names()), {"a", "b"})
        self.group.remove_channel("a")
        self.assertEqual(list(self.group), ["b"])

    def test_equality(self):
        other = ChannelGroup()
        self.assertEqual(self.group, other)

        self.group.set_channel_data("v", [1.0, 2.0], ChannelKind.VECTOR)
        self.assertNotEqual(self.group, other)
        other.set_channel_data("v", [1.0, 2.0], ChannelKind.VECTOR)
        self.assertEqual(self.group, other)
        other.set_channel_data("v", [1.0, 3.0], ChannelKind.VECTOR)
        self.assertNotEqual(self.group, other)


if __name__ == "__main__":
    unittest.main()
