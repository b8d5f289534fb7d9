import logging
import time

import numpy as np

import wayline


def _circuit(lon0: float, lat0: float, t0: float, *, radius_deg: float = 0.02, n: int = 12) -> list[dict[str, float]]:
    # A closed loop of timestamped waypoints around (lon0, lat0), one every 10 s.
    angles = np.linspace(0.0, 2.0 * np.pi, n + 1)
    return [
        {
            "lon": float(lon0 + radius_deg * np.cos(a)),
            "lat": float(lat0 + radius_deg * np.sin(a)),
            "height": 300.0 + 50.0 * float(np.sin(2.0 * a)),
            "timestamp": t0 + 10.0 * i,
        }
        for i, a in enumerate(angles)
    ]


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    client = wayline.run(port=57794)

    # Live flight: the first command creates the entity, the second flies it.
    drone = client.move_to("drone", -3.70, 40.42, 0.0)
    drone.move_to(-3.69, 40.43, 250.0, speed=40.0)

    # Replay two recorded tracks on a shared clock window.
    t0 = time.time()
    tracks = {
        "plane-1": _circuit(-3.70, 40.40, t0),
        "plane-2": _circuit(-3.66, 40.41, t0 + 15.0),
    }
    client.configure_clock(t0, t0 + 135.0, rate=2.0, loop=True)
    replay = client.start_replay_tracks(tracks, speed=2.0, loop=True)
    replay.play()

    try:
        while True:
            time.sleep(5)
            print(replay.state, drone.position)
    except KeyboardInterrupt:
        replay.destroy()


if __name__ == "__main__":
    main()
