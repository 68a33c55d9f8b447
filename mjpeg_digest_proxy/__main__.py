from mjpeg_digest_proxy.cli import main

raise SystemExit(main())
