"""Compare INS/GNSS accuracy for different IMU grades and attitude modes."""
import logging
import numpy as np
from insgnss import filters, sim, transform, util
from insgnss.gnss import derive_gnss_error_model, garmin_gps18x
from insgnss.inertial_sensor import derive_error_model, PROFILES
from insgnss.util import NED_COLS, VEL_COLS, RPH_COLS


logger = logging.getLogger("compare_imus")

IMU_FREQUENCY = 100
TOTAL_TIME = 900
LLA0 = [45.0, 30.0, 100.0]


def run(profile, mode, trajectory, gnss_spec, seed):
    imu_error_model = derive_error_model(PROFILES[profile](IMU_FREQUENCY))
    gnss_error_model = derive_gnss_error_model(gnss_spec, LLA0[0], LLA0[2])
    rng = np.random.RandomState(seed)
    imu = sim.generate_imu_data(trajectory, imu_error_model, rng)
    gnss = sim.generate_gnss(trajectory, gnss_error_model, rng)

    result = filters.run_ins_gnss(imu, gnss, imu_error_model, gnss_error_model,
                                  trajectory.iloc[0], mode=mode)
    error = transform.compute_state_difference(result.trajectory, trajectory)
    return util.compute_rms(error[NED_COLS + VEL_COLS + RPH_COLS])


def main():
    logging.basicConfig(level=logging.INFO,
                        format="%(asctime)s %(name)s %(levelname)s: %(message)s")
    trajectory, _ = sim.generate_sine_velocity_motion(
        1 / IMU_FREQUENCY, TOTAL_TIME, LLA0, [10, 0, 0], [2, 3, 0],
        stationary_time=60, rph_offset=[1, 1, 0])
    gnss_spec = garmin_gps18x()

    for profile in PROFILES:
        for mode in ['dcm', 'quaternion']:
            rms = run(profile, mode, trajectory, gnss_spec, seed=0)
            logger.info("%s, %s: position RMSE %s m, velocity RMSE %s m/s, "
                        "attitude RMSE %s deg", profile, mode,
                        np.round(rms[NED_COLS].values, 2),
                        np.round(rms[VEL_COLS].values, 3),
                        np.round(rms[RPH_COLS].values, 3))


if __name__ == '__main__':
    main()
