"""Configuration settings for campusnav."""

CONFIG = {
    # Sample filter
    "accuracy_threshold": 50,  # meters - worse fixes than this (and prev + margin) are dropped
    "accuracy_degrade_margin": 25,  # meters allowed over the previous fix's accuracy
    "smoothing_factor": 0.25,  # EMA weight on the new sample
    "reject_jump": 120,  # meters - larger jumps within spike_window are GPS spikes
    "spike_window": 3,  # seconds
    "min_sample_interval": 0.5,  # seconds - floor for elapsed time between samples
    # Navigation
    "cached_fix_max_age": 10,  # seconds - reuse last fix at navigation start if newer
    "start_fix_timeout": 20000,  # ms
    "watch_timeout": 10000,  # ms
    "watch_max_age": 2000,  # ms
    "off_route_threshold": 25,  # meters from every route vertex
    "step_advance_radius": 20,  # meters to the next step's vertex
    "arrival_radius": 10,  # meters to the destination
    "walking_speed": 1.4,  # m/s
    "default_instruction": "Head to destination",
    # Positioning adapters
    "gps_poll_interval": 2,  # seconds between termux polls while watching
    "default_position_timeout": 60000,  # ms
    "default_position_max_age": 5000,  # ms
    "browser_ws_port": 8765,
    # Routing
    "ors_url": "https://api.openrouteservice.org/v2/directions/foot-walking/geojson",
    "ors_timeout": 10,  # seconds
    "straight_line_segments": 20,
    # Voice
    "default_test_message": "This is a test of the navigation voice",
    "espeak_base_wpm": 175,  # words per minute at rate 1.0
    # Host application
    "start_retry_time": 60,  # seconds of backoff retries for a starting fix
    "loop_interval": 0.5,  # seconds between main loop checks
}
