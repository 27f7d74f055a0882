"""
模式匹配演示

把光源光束经两个透镜耦合进一个线形谐振腔：
先在一个平台上求谐振腔本征模，把它作为目标光束，
再在另一个平台上用随机搜索找透镜位置，最后保存平台文档。

作者：高斯光束平台项目
"""
import sys
sys.path.insert(0, 'src')

from gaussian_beam_bench import OpticsBench, OpticsType, save_bench


def cavity_mode():
    """两个 R = 100 mm 球面镜组成的线形腔（腔长 50 mm），返回第一个镜子之前的本征光束"""
    bench = OpticsBench(wavelength=461e-9)
    m1 = bench.add_optics(bench.create_optics(OpticsType.CurvedMirror, 0.60, curvature_radius=0.1))
    m2 = bench.add_optics(bench.create_optics(OpticsType.CurvedMirror, 0.65, curvature_radius=0.1))
    bench.cavity.ring_cavity = False
    bench.cavity.add_optics(bench.optics(m1).id)
    bench.cavity.add_optics(bench.optics(m2).id)

    print(f"谐振腔稳定: {bench.is_cavity_stable()}")
    eigen = bench.cavity_eigen_beam(m1)
    print(f"本征模束腰: {eigen.waist() * 1e6:.2f} μm @ {eigen.waist_position() * 1e3:.2f} mm")
    return bench.optics(m1).antecedent(eigen)


def main():
    # 1. 目标光束：谐振腔本征模
    target = cavity_mode()

    # 2. 光源 + 两个模式匹配透镜
    bench = OpticsBench(wavelength=461e-9)
    bench.add_optics(bench.create_optics(OpticsType.Lens, 0.15, focal=0.1))
    bench.add_optics(bench.create_optics(OpticsType.Lens, 0.30, focal=0.05))
    bench.set_target_beam(target)
    bench.set_left_boundary(0.05)
    bench.set_right_boundary(0.55)

    # 3. 随机搜索 + 局部优化
    print("\n搜索透镜位置...")
    found = bench.magic_waist()
    print(f"找到解: {found}")
    for i in range(1, bench.n_optics):
        optics = bench.optics(i)
        print(f"  {optics.name}: 位置 = {optics.position * 1e3:.2f} mm, "
              f"灵敏度 = {bench.sensitivity(i):.3e} m⁻²")

    beam = bench.beam(bench.n_optics - 1)
    print(f"出射光束: {beam.waist() * 1e6:.2f} μm @ {beam.waist_position() * 1e3:.2f} mm")

    # 4. 保存平台
    save_bench(bench, "mode_matching_demo.json")
    print("✓ 保存: mode_matching_demo.json")


if __name__ == "__main__":
    main()
