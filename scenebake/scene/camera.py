import numpy as np
import pyrr as rr # type: ignore[import-untyped]
import typing
from scenebake.core.common_types import vec3f32
from scenebake.scene.node import Node, CameraPayload
from scenebake.scene.transform import transform_point

CAMERA_KEYS: tuple[str, ...] = ("W", "A", "S", "D", "Q", "E", "Z", "X")

class FlyCamera:
    # A first-person camera driven by the viewer's key state.
    # W/S move along the view direction, A/D strafe, Q/E turn (yaw), Z/X look up and down (pitch).
    # Right-handed, Y-up, as OpenGL expects.
    def __init__(self, position: vec3f32, look_at: vec3f32, aspect_ratio: float, up: vec3f32 = (0.0, 1.0, 0.0), fov: float = 60.0, near: float = 0.1, far: float = 100.0, speed: float = 5.0, turn_speed: float = 1.5) -> None:
        self.look_from: rr.Vector3 = rr.Vector3(position)
        self.view_up: rr.Vector3 = rr.Vector3(up)
        self.aspect_ratio: float = aspect_ratio
        self.fov: float = fov
        self.near: float = near
        self.far: float = far
        self.movement_speed: float = speed
        self.turn_speed: float = turn_speed

        # Yaw/pitch from the initial view direction.
        direction: rr.Vector3 = rr.vector.normalize(rr.Vector3(look_at) - self.look_from)
        self.yaw: float = float(np.arctan2(direction[2], direction[0]))
        self.pitch: float = float(np.arcsin(np.clip(direction[1], -1.0, 1.0)))
        self.look_at: rr.Vector3 = self.look_from + self.forward()
        pass

    @classmethod
    def from_node(cls, node: Node, aspect_ratio: float, speed: float = 5.0) -> "FlyCamera":
        # Starts at a camera node's world position, looking down its -Z axis.
        payload: typing.Any = node.payload
        if not isinstance(payload, CameraPayload):
            raise ValueError(f"Node {node.name!r} is not a camera")
        matrix = node.global_transform()
        position = transform_point(matrix, (0.0, 0.0, 0.0))
        target = transform_point(matrix, (0.0, 0.0, -1.0))
        return cls(
            position=(float(position[0]), float(position[1]), float(position[2])),
            look_at=(float(target[0]), float(target[1]), float(target[2])),
            aspect_ratio=aspect_ratio,
            fov=payload.fov,
            near=payload.near,
            far=payload.far,
            speed=speed,
        )

    def forward(self) -> rr.Vector3:
        return rr.vector.normalize(rr.Vector3([
            np.cos(self.yaw) * np.cos(self.pitch),
            np.sin(self.pitch),
            np.sin(self.yaw) * np.cos(self.pitch),
        ]))

    def update(self, frame_time: float, key_state: dict[str, bool]) -> None:
        rotation_speed: float = self.turn_speed * frame_time
        if key_state.get("Q"): self.yaw -= rotation_speed
        if key_state.get("E"): self.yaw += rotation_speed
        if key_state.get("Z"): self.pitch += rotation_speed
        if key_state.get("X"): self.pitch -= rotation_speed
        # Clamp pitch short of straight up/down, where look_at degenerates.
        self.pitch = max(-np.pi/2 + 0.1, min(np.pi/2 - 0.1, self.pitch))

        forward: rr.Vector3 = self.forward()
        right: rr.Vector3 = rr.vector.normalize(rr.vector3.cross(forward, self.view_up))

        velocity: float = self.movement_speed * frame_time
        if key_state.get("W"): self.look_from += forward * velocity
        if key_state.get("S"): self.look_from -= forward * velocity
        if key_state.get("A"): self.look_from -= right * velocity
        if key_state.get("D"): self.look_from += right * velocity

        self.look_at = self.look_from + forward
        pass

    def get_view_matrix(self) -> rr.Matrix44:
        return rr.Matrix44.look_at(
            eye=self.look_from,
            target=self.look_at,
            up=self.view_up,
        )

    def get_projection_matrix(self) -> rr.Matrix44:
        return rr.Matrix44.perspective_projection(
            fovy=self.fov,
            aspect=self.aspect_ratio,
            near=self.near,
            far=self.far,
        )
