from DualMarchingCubes.mesh import create_quad_mesh
import gustaf as gus
import numpy as np

# 8 bit sphere, bright inside
dims = (32, 32, 32)
x, y, z = np.meshgrid(*(np.arange(d) for d in dims), indexing="ij")
distance = np.sqrt((x - 15.5) ** 2 + (y - 15.5) ** 2 + (z - 15.5) ** 2)
volume = np.clip(255 - 20 * distance, 0, 255).astype(np.uint8)
# samples are stored x varying fastest
data = volume.transpose(2, 1, 0).reshape(-1)

mesh = create_quad_mesh(data, dims, iso=128, generate_manifold=True)
print(f"{mesh.quads.shape[0]} quads, manifold: {mesh.is_manifold()}")

gus.show(mesh.to_gus())
