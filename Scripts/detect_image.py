import sys

import cv2

from live_pose.ingest import load_image
from pose_kit import draw_poses, load_pipeline


def main():
    path_image = sys.argv[1] if len(sys.argv) > 1 else "Media/example.jpg"
    image = load_image(path_image)

    pipeline = load_pipeline(model_path="Models/yolov8n-pose.onnx")
    pipeline.warmup()

    # detect
    detections = pipeline(image)
    for det in detections:
        print(det.score, det.box.as_yxyx())

    vis = draw_poses(image, detections, canvas_size=pipeline.input_size)
    cv2.imshow("poses", vis)
    cv2.waitKey(0)
    cv2.destroyAllWindows()


if __name__ == "__main__":
    main()
