import unittest
import numpy as np

from pycamrig import CameraId, NCameras, NCamerasId, Transformation, INVALID_CAMERA_INDEX

from mock_data import create_mock_camera, create_mock_rig, create_mock_transformations


class TestNCameras(unittest.TestCase):
    """Tests for the multi-camera rig."""

    def setUp(self):
        self.rig, self.cameras, self.transformations = create_mock_rig(num_cameras=3)

    def test_uninitialized_rig(self):
        rig = NCameras()
        self.assertFalse(rig.is_initialized)
        self.assertEqual(rig.num_cameras(), 0)
        self.assertFalse(rig.has_camera_with_id(CameraId.random()))
        with self.assertRaises(IndexError):
            rig.get_camera(0)

    def test_initialization(self):
        self.assertTrue(self.rig.is_initialized)
        self.assertEqual(self.rig.num_cameras(), 3)
        self.assertEqual(self.rig.get_num_cameras(), 3)
        self.assertEqual(len(self.rig), 3)
        self.assertEqual(self.rig.label, "mock_rig")
        for i, (camera, T) in enumerate(zip(self.cameras, self.transformations)):
            self.assertIs(self.rig.get_camera(i), camera)
            self.assertIs(self.rig.get_camera_mutable(i), camera)
            self.assertEqual(self.rig.get_camera_id(i), camera.id)
            self.assertEqual(self.rig.get_T_C_B(i), T)
        self.assertEqual(self.rig.get_camera_vector(), tuple(self.cameras))
        self.assertEqual(self.rig.get_transformation_vector(), tuple(self.transformations))

    def test_camera_index_lookup(self):
        for i, camera in enumerate(self.cameras):
            self.assertTrue(self.rig.has_camera_with_id(camera.id))
            self.assertEqual(self.rig.get_camera_index(camera.id), i)

        unknown = CameraId.random()
        self.assertFalse(self.rig.has_camera_with_id(unknown))
        self.assertEqual(self.rig.get_camera_index(unknown), INVALID_CAMERA_INDEX)

    def test_mismatched_lengths(self):
        with self.assertRaises(ValueError):
            NCameras(NCamerasId.random(), self.transformations[:2], self.cameras, "rig")
        with self.assertRaises(ValueError):
            NCameras(NCamerasId.random(), self.transformations, self.cameras[:1], "rig")

    def test_invalid_elements(self):
        with self.assertRaises(ValueError):
            NCameras(NCamerasId.random(), self.transformations, [self.cameras[0], None, self.cameras[2]], "rig")
        with self.assertRaises(TypeError):
            NCameras(NCamerasId.random(), [np.eye(4)] * 3, self.cameras, "rig")
        with self.assertRaises(TypeError):
            NCameras(CameraId.random(), self.transformations, self.cameras, "rig")

    def test_duplicate_camera_ids(self):
        camera_id = CameraId.random()
        cameras = [create_mock_camera(id=camera_id), create_mock_camera(id=camera_id)]
        with self.assertRaises(ValueError):
            NCameras(NCamerasId.random(), create_mock_transformations(2), cameras, "rig")

    def test_index_bounds(self):
        for index in (3, 10, -1):
            with self.assertRaises(IndexError):
                self.rig.get_camera(index)
            with self.assertRaises(IndexError):
                self.rig.get_camera_mutable(index)
            with self.assertRaises(IndexError):
                self.rig.get_T_C_B(index)
            with self.assertRaises(IndexError):
                self.rig.set_T_C_B(index, Transformation())
            with self.assertRaises(IndexError):
                self.rig.set_camera(index, create_mock_camera())
            with self.assertRaises(IndexError):
                self.rig.get_camera_id(index)

    def test_set_camera_updates_lookup(self):
        old_camera = self.cameras[1]
        new_camera = create_mock_camera()
        self.rig.set_camera(1, new_camera)

        self.assertIs(self.rig.get_camera(1), new_camera)
        self.assertEqual(self.rig.get_camera_index(new_camera.id), 1)
        self.assertFalse(self.rig.has_camera_with_id(old_camera.id))
        self.assertEqual(self.rig.get_camera_index(old_camera.id), INVALID_CAMERA_INDEX)
        self.assertEqual(self.rig.get_camera_index(self.cameras[0].id), 0)
        self.assertEqual(self.rig.get_camera_index(self.cameras[2].id), 2)

    def test_set_camera_same_id_in_place(self):
        replacement = create_mock_camera([0.1, 0.0, 0.0, 0.0], id=self.cameras[0].id)
        self.rig.set_camera(0, replacement)
        self.assertIs(self.rig.get_camera(0), replacement)
        self.assertEqual(self.rig.get_camera_index(replacement.id), 0)

    def test_set_camera_rejects_duplicates_and_none(self):
        with self.assertRaises(ValueError):
            self.rig.set_camera(0, self.cameras[2])
        with self.assertRaises(ValueError):
            self.rig.set_camera(0, None)
        # The rig is unchanged after a rejected replacement
        self.assertIs(self.rig.get_camera(0), self.cameras[0])
        self.assertEqual(self.rig.get_camera_index(self.cameras[2].id), 2)

    def test_set_T_C_B(self):
        T = Transformation.from_qvec_tvec((1.0, 0.0, 0.0, 0.0), (5.0, 5.0, 5.0))
        self.rig.set_T_C_B(2, T)
        self.assertEqual(self.rig.get_T_C_B(2), T)
        with self.assertRaises(TypeError):
            self.rig.set_T_C_B(2, np.eye(4))

    def test_property_tree_construction_not_implemented(self):
        with self.assertRaises(NotImplementedError):
            NCameras.from_property_tree({"label": "rig"})

    def test_equality(self):
        rig_id = NCamerasId.random()
        rig_a = NCameras(rig_id, self.transformations, self.cameras, "rig")
        rig_b = NCameras(rig_id, list(self.transformations), list(self.cameras), "rig")
        self.assertEqual(rig_a, rig_b)

        # Different label
        self.assertNotEqual(rig_a, NCameras(rig_id, self.transformations, self.cameras, "other"))
        # Different id
        self.assertNotEqual(rig_a, NCameras(NCamerasId.random(), self.transformations, self.cameras, "rig"))
        # Different camera count
        self.assertNotEqual(rig_a, NCameras(rig_id, self.transformations[:2], self.cameras[:2], "rig"))

        # Different single camera
        cameras = list(self.cameras)
        cameras[1] = create_mock_camera()
        self.assertNotEqual(rig_a, NCameras(rig_id, self.transformations, cameras, "rig"))

        # Different single transformation
        transformations = list(self.transformations)
        transformations[2] = Transformation()
        self.assertNotEqual(rig_a, NCameras(rig_id, transformations, self.cameras, "rig"))

        self.assertEqual(NCameras(), NCameras())

    def test_equality_detects_small_extrinsic_change(self):
        rig_id = NCamerasId.random()
        rig_a = NCameras(rig_id, self.transformations, self.cameras, "rig")

        transformations = list(self.transformations)
        T = transformations[1]
        transformations[1] = Transformation(T.rotation, T.translation + np.array([0.0, 5e-9, 0.0]))
        rig_b = NCameras(rig_id, transformations, self.cameras, "rig")

        self.assertNotEqual(rig_a, rig_b)
        self.assertFalse(rig_a == rig_b)
        self.assertTrue(rig_a.get_T_C_B(1).is_close(rig_b.get_T_C_B(1)))


if __name__ == "__main__":
    unittest.main()
