import numba
import numpy as np
from . import earth, transform


@numba.njit()
def gravity(lat, alt):
    sin2 = np.sin(lat * transform.DEG_TO_RAD) ** 2
    return (earth.GE * (1 + earth.F * sin2) /
            (1 - earth.E2 * sin2) ** 0.5 * (1 - 2 * alt / earth.A))


@numba.njit
def mat_from_rotvec(rv, mat):
    norm2 = np.sum(rv ** 2)
    if norm2 > 1e-6:
        norm = norm2 ** 0.5
        cos = np.cos(norm)
        k1 = np.sin(norm) / norm
        k2 = (1 - np.cos(norm)) / norm2
    else:
        norm4 = norm2 * norm2
        cos = 1 - norm2 / 2 + norm4 / 24
        k1 = 1 - norm2 / 6 + norm4 / 120
        k2 = 0.5 - norm2 / 24 + norm4 / 720

    mat[0, 0] = k2 * rv[0] * rv[0] + cos
    mat[0, 1] = k2 * rv[0] * rv[1] - k1 * rv[2]
    mat[0, 2] = k2 * rv[0] * rv[2] + k1 * rv[1]
    mat[1, 0] = k2 * rv[1] * rv[0] + k1 * rv[2]
    mat[1, 1] = k2 * rv[1] * rv[1] + cos
    mat[1, 2] = k2 * rv[1] * rv[2] - k1 * rv[0]
    mat[2, 0] = k2 * rv[2] * rv[0] - k1 * rv[1]
    mat[2, 1] = k2 * rv[2] * rv[1] + k1 * rv[0]
    mat[2, 2] = k2 * rv[2] * rv[2] + cos


@numba.njit
def quat_from_rotvec(rv, quat):
    norm2 = np.sum(rv ** 2)
    if norm2 > 1e-6:
        norm = norm2 ** 0.5
        cos = np.cos(0.5 * norm)
        k = np.sin(0.5 * norm) / norm
    else:
        norm4 = norm2 * norm2
        cos = 1 - norm2 / 8 + norm4 / 384
        k = 0.5 - norm2 / 48 + norm4 / 3840

    quat[0] = cos
    quat[1] = k * rv[0]
    quat[2] = k * rv[1]
    quat[3] = k * rv[2]


@numba.njit
def quat_multiply(p, q, result):
    result[0] = p[0] * q[0] - p[1] * q[1] - p[2] * q[2] - p[3] * q[3]
    result[1] = p[0] * q[1] + p[1] * q[0] + p[2] * q[3] - p[3] * q[2]
    result[2] = p[0] * q[2] - p[1] * q[3] + p[2] * q[0] + p[3] * q[1]
    result[3] = p[0] * q[3] + p[1] * q[2] - p[2] * q[1] + p[3] * q[0]


@numba.njit
def quat_normalize(quat):
    norm = np.sqrt(np.sum(quat ** 2))
    for k in range(4):
        quat[k] /= norm


@numba.njit
def mat_from_quat(quat, mat):
    w = quat[0]
    x = quat[1]
    y = quat[2]
    z = quat[3]

    mat[0, 0] = 1 - 2 * (y * y + z * z)
    mat[0, 1] = 2 * (x * y - w * z)
    mat[0, 2] = 2 * (x * z + w * y)
    mat[1, 0] = 2 * (x * y + w * z)
    mat[1, 1] = 1 - 2 * (x * x + z * z)
    mat[1, 2] = 2 * (y * z - w * x)
    mat[2, 0] = 2 * (x * z - w * y)
    mat[2, 1] = 2 * (y * z + w * x)
    mat[2, 2] = 1 - 2 * (x * x + y * y)


@numba.njit
def orthonormalize(mat):
    # First order iteration of mat @ (mat.T @ mat)^(-1/2).
    error = np.empty((3, 3))
    for k in range(3):
        for m in range(3):
            s = 0.0
            for i in range(3):
                s += mat[i, k] * mat[i, m]
            error[k, m] = s - (1.0 if k == m else 0.0)

    corrected = np.empty((3, 3))
    for k in range(3):
        for m in range(3):
            s = 0.0
            for i in range(3):
                s += mat[k, i] * error[i, m]
            corrected[k, m] = mat[k, m] - 0.5 * s

    for k in range(3):
        for m in range(3):
            mat[k, m] = corrected[k, m]


@numba.njit
def update_velocity_position(dt, lla_old, velocity_old, mat_nb, dv,
                             lla_new, velocity_new, xi, with_altitude):
    lat = lla_old[0]
    alt = lla_old[2]

    sin_lat = np.sin(lat * transform.DEG_TO_RAD)
    cos_lat = np.sqrt(1 - sin_lat * sin_lat)
    tan_lat = sin_lat / cos_lat

    x = 1 - earth.E2 * sin_lat * sin_lat
    re = earth.A / x ** 0.5
    rn = re * (1 - earth.E2) / x + alt
    re += alt

    Omega1 = earth.RATE * cos_lat
    Omega2 = 0.0
    Omega3 = -earth.RATE * sin_lat

    V1 = velocity_old[0]
    V2 = velocity_old[1]
    V3 = velocity_old[2]

    rho1 = V2 / re
    rho2 = -V1 / rn
    rho3 = -rho1 * tan_lat
    chi1 = Omega1 + rho1
    chi2 = Omega2 + rho2
    chi3 = Omega3 + rho3

    dv1 = mat_nb[0, 0] * dv[0] + mat_nb[0, 1] * dv[1] + mat_nb[0, 2] * dv[2]
    dv2 = mat_nb[1, 0] * dv[0] + mat_nb[1, 1] * dv[1] + mat_nb[1, 2] * dv[2]
    dv3 = mat_nb[2, 0] * dv[0] + mat_nb[2, 1] * dv[1] + mat_nb[2, 2] * dv[2]

    velocity_new[0] = V1 + dv1 + (- (chi2 + Omega2) * V3
                                  + (chi3 + Omega3) * V2
                                  - 0.5 * (chi2 * dv3 - chi3 * dv2)
                                  ) * dt
    velocity_new[1] = V2 + dv2 + (- (chi3 + Omega3) * V1
                                  + (chi1 + Omega1) * V3
                                  - 0.5 * (chi3 * dv1 - chi1 * dv3)
                                  ) * dt
    if with_altitude:
        velocity_new[2] = V3 + dv3 + (- (chi1 + Omega1) * V2
                                      + (chi2 + Omega2) * V1
                                      - 0.5 * (chi1 * dv2 - chi2 * dv1)
                                      + gravity(lat, alt - 0.5 * V3 * dt)
                                      ) * dt
    else:
        velocity_new[2] = 0.0

    V1 = 0.5 * (V1 + velocity_new[0])
    V2 = 0.5 * (V2 + velocity_new[1])
    V3 = 0.5 * (V3 + velocity_new[2])
    rho1 = V2 / re
    rho2 = -V1 / rn
    rho3 = -rho1 * tan_lat
    chi1 = Omega1 + rho1
    chi2 = Omega2 + rho2
    chi3 = Omega3 + rho3

    lla_new[0] = lla_old[0] - transform.RAD_TO_DEG * rho2 * dt
    lla_new[1] = lla_old[1] + transform.RAD_TO_DEG * rho1 / cos_lat * dt
    lla_new[2] = lla_old[2] - V3 * dt

    xi[0] = -chi1 * dt
    xi[1] = -chi2 * dt
    xi[2] = -chi3 * dt


@numba.njit
def integrate_dcm(dt_array, lla, velocity_n, mat_nb, theta, dv, offset,
                  with_altitude, orthonormalize_period):
    xi = np.empty(3)
    C = np.empty((3, 3))
    dBn = np.empty((3, 3))
    dBb = np.empty((3, 3))

    for i in range(len(theta)):
        j = i + offset
        update_velocity_position(dt_array[i], lla[j], velocity_n[j], mat_nb[j], dv[i],
                                 lla[j + 1], velocity_n[j + 1], xi, with_altitude)
        mat_from_rotvec(xi, dBn)
        mat_from_rotvec(theta[i], dBb)
        np.dot(mat_nb[j], dBb, C)
        np.dot(dBn, C, mat_nb[j + 1])
        if orthonormalize_period > 0 and (j + 1) % orthonormalize_period == 0:
            orthonormalize(mat_nb[j + 1])


@numba.njit
def integrate_quat(dt_array, lla, velocity_n, quat_nb, theta, dv, offset,
                   with_altitude):
    xi = np.empty(3)
    mat_nb = np.empty((3, 3))
    dqn = np.empty(4)
    dqb = np.empty(4)
    q = np.empty(4)

    for i in range(len(theta)):
        j = i + offset
        mat_from_quat(quat_nb[j], mat_nb)
        update_velocity_position(dt_array[i], lla[j], velocity_n[j], mat_nb, dv[i],
                                 lla[j + 1], velocity_n[j + 1], xi, with_altitude)
        quat_from_rotvec(xi, dqn)
        quat_from_rotvec(theta[i], dqb)
        quat_multiply(quat_nb[j], dqb, q)
        quat_multiply(dqn, q, quat_nb[j + 1])
        quat_normalize(quat_nb[j + 1])
