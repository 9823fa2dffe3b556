import unittest
import numpy as np

from pycamrig import Transformation
from pycamrig.transformation import qvec2rotmat, rotmat2qvec


class TestQuaternions(unittest.TestCase):
    """Tests for the quaternion helpers."""

    def test_qvec_rotmat_conversion(self):
        """Test conversion between quaternion and rotation matrix."""
        # Identity quaternion
        R = qvec2rotmat((1.0, 0.0, 0.0, 0.0))
        np.testing.assert_allclose(R, np.eye(3), rtol=1e-12)
        np.testing.assert_allclose(rotmat2qvec(R), (1.0, 0.0, 0.0, 0.0), atol=1e-12)

        # 90 degrees around X
        qvec = (np.sqrt(0.5), np.sqrt(0.5), 0.0, 0.0)
        R = qvec2rotmat(qvec)
        R_expected = np.array([
            [1.0, 0.0, 0.0],
            [0.0, 0.0, -1.0],
            [0.0, 1.0, 0.0]
        ])
        np.testing.assert_allclose(R, R_expected, atol=1e-12)
        np.testing.assert_allclose(rotmat2qvec(R), qvec, atol=1e-12)

    def test_rotmat2qvec_all_branches(self):
        """Round trip through each of the four numerically stable branches."""
        for qvec in [(0.9, 0.1, -0.2, 0.3), (0.1, 0.9, 0.2, -0.3),
                     (0.1, -0.2, 0.9, 0.3), (0.1, 0.3, -0.2, 0.9)]:
            q = np.array(qvec) / np.linalg.norm(qvec)
            np.testing.assert_allclose(rotmat2qvec(qvec2rotmat(q)), q, atol=1e-12)

    def test_invalid_inputs(self):
        with self.assertRaises(ValueError):
            qvec2rotmat((1.0, 0.0, 0.0))
        with self.assertRaises(ValueError):
            qvec2rotmat((0.0, 0.0, 0.0, 0.0))
        with self.assertRaises(ValueError):
            rotmat2qvec(np.eye(4))


class TestTransformation(unittest.TestCase):
    """Tests for rigid body transformations."""

    def setUp(self):
        self.T_A_B = Transformation.from_qvec_tvec((0.9, 0.1, -0.2, 0.3), (1.0, -2.0, 0.5))

    def test_default_is_identity(self):
        T = Transformation()
        np.testing.assert_array_equal(T.as_matrix(), np.eye(4))
        np.testing.assert_array_equal(T.transform((1.0, 2.0, 3.0)), (1.0, 2.0, 3.0))

    def test_transform_point_and_block(self):
        T = Transformation(qvec2rotmat((np.sqrt(0.5), np.sqrt(0.5), 0.0, 0.0)), (1.0, 0.0, 0.0))
        np.testing.assert_allclose(T.transform((0.0, 1.0, 0.0)), (1.0, 0.0, 1.0), atol=1e-12)

        block = np.array([[0.0, 1.0], [1.0, 0.0], [0.0, 0.0]])
        np.testing.assert_allclose(T.transform(block), [[1.0, 2.0], [0.0, 0.0], [1.0, 0.0]], atol=1e-12)

        with self.assertRaises(ValueError):
            T.transform((1.0, 2.0))

    def test_inverse_and_composition(self):
        identity = self.T_A_B @ self.T_A_B.inverse()
        np.testing.assert_allclose(identity.as_matrix(), np.eye(4), atol=1e-12)

        point = np.array([0.3, -0.7, 2.0])
        np.testing.assert_allclose(self.T_A_B.inverse().transform(self.T_A_B.transform(point)),
                                   point, atol=1e-12)
        np.testing.assert_allclose((self.T_A_B @ self.T_A_B).as_matrix(),
                                   self.T_A_B.as_matrix() @ self.T_A_B.as_matrix(), atol=1e-12)

    def test_matrix_round_trip(self):
        T = Transformation.from_matrix(self.T_A_B.as_matrix())
        self.assertEqual(T, self.T_A_B)

        bad = np.eye(4)
        bad[3, 0] = 1.0
        with self.assertRaises(ValueError):
            Transformation.from_matrix(bad)

    def test_invalid_rotation(self):
        with self.assertRaises(ValueError):
            Transformation(2.0 * np.eye(3))
        with self.assertRaises(ValueError):
            Transformation(np.diag([1.0, 1.0, -1.0]))  # Reflection
        with self.assertRaises(ValueError):
            Transformation(np.eye(3), (0.0, 0.0))

    def test_equality(self):
        other = Transformation(self.T_A_B.rotation, self.T_A_B.translation + 1e-3)
        self.assertNotEqual(self.T_A_B, other)
        self.assertEqual(self.T_A_B, Transformation(self.T_A_B.rotation, self.T_A_B.translation))

    def test_equality_is_exact(self):
        nudged = Transformation(self.T_A_B.rotation, self.T_A_B.translation + np.array([5e-9, 0.0, 0.0]))
        self.assertNotEqual(self.T_A_B, nudged)
        self.assertTrue(self.T_A_B.is_close(nudged))
        self.assertFalse(self.T_A_B.is_close(nudged, atol=1e-9))

        far = Transformation(self.T_A_B.rotation, self.T_A_B.translation + 1e-3)
        self.assertFalse(self.T_A_B.is_close(far))
        self.assertTrue(self.T_A_B.is_close(far, atol=1e-2))


if __name__ == "__main__":
    unittest.main()
