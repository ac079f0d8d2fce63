from django.shortcuts import get_object_or_404
from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsAdmin, IsAdminOrTeacher
from academics import models as ac_models
from academics.serializers import (
    AdmissionSerializer,
    PromoteSerializer,
    PromotionRecordSerializer,
    RollbackSerializer,
    SchoolClassSerializer,
    StudentSummarySerializer,
)
from academics.services import audit_log, promotion_engine, roster
from erp.exceptions import ValidationError


class SchoolClassListCreateView(APIView):

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAdmin()]
        return [IsAdminOrTeacher()]

    def get(self, request, *args, **kwargs):
        qs = ac_models.SchoolClass.objects.all()
        if request.query_params.get('active') == '1':
            qs = qs.filter(is_active=True)
        return Response(SchoolClassSerializer(qs, many=True).data)

    def post(self, request, *args, **kwargs):
        serializer = SchoolClassSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        school_class = serializer.save()
        return Response(SchoolClassSerializer(school_class).data, status=status.HTTP_201_CREATED)


class AdmissionView(APIView):
    permission_classes = (IsAdmin,)

    def post(self, request, *args, **kwargs):
        serializer = AdmissionSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        entry = roster.admit_student(
            serializer.validated_data['student'],
            serializer.validated_data['school_class'],
            request.user,
            timezone.now(),
        )
        return Response(
            {'student_id': entry.student_id, 'class_id': entry.school_class_id},
            status=status.HTTP_201_CREATED,
        )


class PromotionView(APIView):
    permission_classes = (IsAdmin,)

    def post(self, request, *args, **kwargs):
        serializer = PromoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        batch = promotion_engine.promote(
            data['student_ids'],
            data['from_class'],
            data['to_class'],
            data['session'],
            data['term'],
            request.user,
            timezone.now(),
        )
        return Response({
            'batch_id': batch.pk,
            'promotion_date': batch.promotion_date,
            'record_ids': list(batch.records.order_by('id').values_list('id', flat=True)),
        })


class PromotionRollbackView(APIView):
    permission_classes = (IsAdmin,)

    def post(self, request, *args, **kwargs):
        serializer = RollbackSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        report = promotion_engine.rollback(serializer.to_selector(), request.user, timezone.now())
        code = status.HTTP_207_MULTI_STATUS if report.is_partial else status.HTTP_200_OK
        return Response(report.as_dict(), status=code)


class PromotionHistoryView(APIView):
    permission_classes = (IsAdminOrTeacher,)

    def get(self, request, *args, **kwargs):
        student_id = request.query_params.get('student_id')
        if not student_id or not student_id.isdigit():
            raise ValidationError('student_id query parameter is required.', param='student_id')
        records = audit_log.history_for_student(int(student_id))
        return Response(PromotionRecordSerializer(records, many=True).data)


class PromotionCandidatesView(APIView):
    permission_classes = (IsAdminOrTeacher,)

    def get(self, request, class_id: int, *args, **kwargs):
        school_class = get_object_or_404(ac_models.SchoolClass, pk=class_id)
        students = promotion_engine.promotion_candidates(school_class)
        return Response({
            'class_id': school_class.pk,
            'class_name': school_class.name,
            'students': StudentSummarySerializer(students, many=True).data,
        })
