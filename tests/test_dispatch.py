"""Tests for thread-group sizing and the two dispatch geometries."""

import pytest

from photoprint.dispatch import (
    DeviceCapability, KERNEL_FUNCTION, KERNEL_FUNCTION_NONUNIFORM,
    NonUniformDispatch, Size, UniformDispatch, policy_type, thread_group_size,
)


class TestThreadGroupSize:

    def test_simd_wide_limit_tall(self):
        assert thread_group_size(32, 1024) == Size(32, 32, 1)

    def test_truncates_height(self):
        assert thread_group_size(64, 1000) == Size(64, 15, 1)

    def test_single_row(self):
        assert thread_group_size(32, 32) == Size(32, 1, 1)

    def test_limit_below_width_raises(self):
        with pytest.raises(ValueError, match="smaller than"):
            thread_group_size(32, 16)

    def test_zero_width_raises(self):
        with pytest.raises(ValueError, match="execution_width"):
            thread_group_size(0, 1024)


class TestNonUniform:

    def test_grid_is_exact_image(self):
        g = NonUniformDispatch(Size(32, 32)).plan(100, 50)
        assert g.threads_per_grid == Size(100, 50, 1)
        assert g.groups_per_grid == Size(4, 2, 1)
        assert g.threads_per_group == Size(32, 32, 1)
        assert g.exact
        assert g.total_threads == 5000

    def test_function_and_capability(self):
        assert NonUniformDispatch.function_name == KERNEL_FUNCTION_NONUNIFORM
        assert NonUniformDispatch.capability is DeviceCapability.NON_UNIFORM


class TestUniform:

    def test_grid_rounds_up_to_groups(self):
        g = UniformDispatch(Size(32, 32)).plan(100, 50)
        assert g.groups_per_grid == Size(4, 2, 1)
        assert g.threads_per_grid == Size(128, 64, 1)
        assert not g.exact
        assert g.total_threads == 128 * 64

    def test_aligned_image_is_exact(self):
        g = UniformDispatch(Size(8, 4)).plan(64, 64)
        assert g.groups_per_grid == Size(8, 16, 1)
        assert g.threads_per_grid == Size(64, 64, 1)
        assert g.exact

    def test_covers_every_pixel(self):
        for w, h in [(1, 1), (31, 33), (65, 1), (7, 200)]:
            g = UniformDispatch(Size(32, 4)).plan(w, h)
            assert g.threads_per_grid.width >= w
            assert g.threads_per_grid.height >= h
            assert g.threads_per_grid.width - w < 32
            assert g.threads_per_grid.height - h < 4

    def test_function_and_capability(self):
        assert UniformDispatch.function_name == KERNEL_FUNCTION
        assert UniformDispatch.capability is DeviceCapability.UNIFORM_ONLY


class TestPolicySelection:

    def test_policy_type(self):
        assert policy_type(DeviceCapability.NON_UNIFORM) is NonUniformDispatch
        assert policy_type(DeviceCapability.UNIFORM_ONLY) is UniformDispatch

    def test_policy_type_from_value(self):
        assert policy_type("uniform_only") is UniformDispatch

    def test_unknown_capability(self):
        with pytest.raises(ValueError, match="Unknown device capability"):
            policy_type("warp_speed")

    @pytest.mark.parametrize("policy", [NonUniformDispatch, UniformDispatch])
    def test_empty_image(self, policy):
        g = policy(Size(32, 32)).plan(0, 0)
        assert g.is_empty
        assert g.total_threads == 0
